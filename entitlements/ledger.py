import logging
from typing import Mapping, Optional

from core.errors import QuotaExhausted

from .models import (
    Entitlement,
    EntitlementUsage,
    ServiceCategory,
    Subscription,
    UsageSummary,
    UNLIMITED,
)

logger = logging.getLogger(__name__)


class EntitlementLedger:
    """Quota bookkeeping on a subscription's entitlement records.

    Methods mutate the Subscription they are given; persisting it (and
    serializing concurrent callers) is the caller's job, normally inside
    a storage transaction keyed by the subscription.
    """

    def ensure_policy_minimum(
        self, subscription: Subscription, category: ServiceCategory, minimum: int
    ) -> Entitlement:
        entitlement = subscription.entitlements.get(category)
        if entitlement is None:
            entitlement = Entitlement(limit=minimum, used=0)
            subscription.entitlements[category] = entitlement
            logger.info(
                "Backfilled %s entitlement on %s with limit %d",
                category.value, subscription.subscription_id, minimum,
            )
        elif not entitlement.is_unlimited and entitlement.limit < minimum:
            logger.info(
                "Raised %s limit on %s from %d to %d",
                category.value, subscription.subscription_id, entitlement.limit, minimum,
            )
            entitlement.limit = minimum
            entitlement.recompute()
        return entitlement

    def apply_policy_minimums(
        self, subscription: Subscription, minimums: Mapping[ServiceCategory, int]
    ) -> Subscription:
        for category, minimum in minimums.items():
            self.ensure_policy_minimum(subscription, category, minimum)
        return subscription

    def has_remaining(self, subscription: Subscription, category: ServiceCategory) -> bool:
        entitlement = subscription.entitlements.get(category)
        if entitlement is None:
            return False
        return entitlement.is_unlimited or entitlement.remaining > 0

    def debit(self, subscription: Subscription, category: ServiceCategory) -> Entitlement:
        if not self.has_remaining(subscription, category):
            raise QuotaExhausted(
                f"No remaining {category.value} units on subscription {subscription.subscription_id}"
            )
        entitlement = subscription.entitlements[category]
        entitlement.used += 1
        entitlement.recompute()
        return entitlement

    def credit(self, subscription: Subscription, category: ServiceCategory) -> Optional[Entitlement]:
        entitlement = subscription.entitlements.get(category)
        if entitlement is None:
            logger.warning(
                "No %s entitlement to credit on %s", category.value, subscription.subscription_id
            )
            return None
        entitlement.used = max(0, entitlement.used - 1)
        entitlement.recompute()
        return entitlement

    def record_usage(self, subscription: Subscription, category: ServiceCategory) -> Optional[Entitlement]:
        """Count one consumed service against a category without the quota guard."""
        entitlement = subscription.entitlements.get(category)
        if entitlement is None:
            return None
        entitlement.used += 1
        entitlement.recompute()
        return entitlement

    def reset(self, subscription: Subscription, category: ServiceCategory) -> Optional[Entitlement]:
        entitlement = subscription.entitlements.get(category)
        if entitlement is None:
            return None
        entitlement.used = 0
        entitlement.recompute()
        return entitlement

    def usage_summary(self, subscription: Subscription) -> UsageSummary:
        usage = {
            category: EntitlementUsage(
                limit=entitlement.limit,
                used=entitlement.used,
                remaining=UNLIMITED if entitlement.is_unlimited else entitlement.remaining,
            )
            for category, entitlement in subscription.entitlements.items()
        }
        return UsageSummary(
            subscription_id=subscription.subscription_id,
            plan_name=subscription.plan_name,
            expired=subscription.is_expired(),
            usage=usage,
        )
