import logging
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional
from uuid import uuid4

from pydantic.alias_generators import to_camel

from core.errors import DependencyFailure, Expired, InvalidTransition, NotFound, QuotaExhausted, ValidationError
from core.models import Pagination
from core.storage import InMemoryStorage, UnitOfWork
from entitlements.ledger import EntitlementLedger
from entitlements.models import (
    CLAIMABLE_CATEGORIES,
    QuotaOverridePolicy,
    ServiceCategory,
    Subscription,
    UsageSummary,
)
from wallet.models import PaymentMethod, PostEarningRequest
from wallet.service import WalletService

from .models import (
    TRANSITIONS,
    ApproveClaimRequest,
    AssignVendorRequest,
    ClaimEvent,
    ClaimListResponse,
    ClaimStats,
    ClaimStatus,
    CompleteClaimRequest,
    EarningPosting,
    RejectClaimRequest,
    SubmitClaimRequest,
    WarrantyClaim,
)
from .notifications import VendorNotifier

logger = logging.getLogger(__name__)

DEFAULT_POLICY_MINIMUMS = {ServiceCategory.WARRANTY_CLAIM: 3}

# Scalar columns only; nested billing and free text are not orderable
SORTABLE_FIELDS = (
    "created_at",
    "updated_at",
    "status",
    "subscription_id",
    "plan_name",
    "service_category",
    "user_id",
    "assigned_vendor",
    "earning_posted",
    "approved_at",
    "rejected_at",
    "assigned_at",
    "completed_at",
)

SORT_FIELDS = {
    **{name: name for name in SORTABLE_FIELDS},
    **{to_camel(name): name for name in SORTABLE_FIELDS},
}


class ClaimService:
    """Warranty claim lifecycle over a subscription's entitlement ledger.

    Each transition reads and writes the claim and its subscription inside
    one storage transaction keyed by the subscription, so the claim status
    and the quota counters change together or not at all. Notifications
    and wallet postings run after commit and never undo a transition.
    """

    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        ledger: Optional[EntitlementLedger] = None,
        wallet: Optional[WalletService] = None,
        notifier: Optional[VendorNotifier] = None,
        override_policy: QuotaOverridePolicy = QuotaOverridePolicy.STRICT,
        policy_minimums: Optional[Mapping[ServiceCategory, int]] = None,
    ):
        self.storage = storage or InMemoryStorage()
        self.ledger = ledger or EntitlementLedger()
        self.wallet = wallet or WalletService(self.storage)
        self.notifier = notifier or VendorNotifier()
        self.override_policy = override_policy
        self.policy_minimums = dict(DEFAULT_POLICY_MINIMUMS if policy_minimums is None else policy_minimums)

    # Data load

    def load_subscription(self, subscription: Subscription) -> Subscription:
        """Store a subscription, backfilling entitlements to the policy minimums."""
        self.ledger.apply_policy_minimums(subscription, self.policy_minimums)
        with self.storage.transaction(self._subscription_key(subscription.subscription_id)) as tx:
            tx.put("subscriptions", subscription.id, subscription.model_dump())
        return subscription

    def register_vendor(self, vendor_id: str, name: str, **details) -> dict:
        vendor = {"id": vendor_id, "name": name, **details}
        with self.storage.transaction(f"vendor:{vendor_id}") as tx:
            tx.put("vendors", vendor_id, vendor)
        return vendor

    # Submission

    def submit_claim(self, user_id: str, request: SubmitClaimRequest) -> WarrantyClaim:
        issue_description = (request.issue_description or "").strip()
        if not request.subscription_id or not issue_description:
            raise ValidationError("Subscription ID, service category, and issue description are required")
        if request.service_category not in CLAIMABLE_CATEGORIES:
            raise ValidationError(
                f"Claims can only be raised for {', '.join(c.value for c in CLAIMABLE_CATEGORIES)}"
            )

        record = self.storage.find_subscription(request.subscription_id, user_id)
        if not record:
            raise NotFound("Active subscription not found")

        with self.storage.transaction(self._subscription_key(record["subscription_id"])) as tx:
            subscription = Subscription(**tx.get("subscriptions", record["id"]))
            if subscription.is_expired():
                raise Expired("Subscription has expired")

            category = ServiceCategory.WARRANTY_CLAIM
            if not self.ledger.has_remaining(subscription, category):
                if self.override_policy != QuotaOverridePolicy.ALLOW_RESET_FOR_TESTING:
                    raise QuotaExhausted(
                        "No remaining warranty claims available. "
                        "Please contact support to increase your warranty claims limit."
                    )
                logger.warning(
                    "Quota override policy %s reset %s on %s",
                    self.override_policy.value, category.value, subscription.subscription_id,
                )
                minimum = self.policy_minimums.get(category, DEFAULT_POLICY_MINIMUMS[category])
                self.ledger.ensure_policy_minimum(subscription, category, minimum)
                self.ledger.reset(subscription, category)

            self.ledger.debit(subscription, category)

            now = datetime.now(timezone.utc)
            claim = WarrantyClaim(
                id=str(uuid4()),
                subscription_id=subscription.subscription_id,
                user_id=subscription.user_id,
                plan_name=request.plan_name or subscription.plan_name,
                service_category=request.service_category,
                issue_description=issue_description,
                created_at=now,
                updated_at=now,
            )
            tx.put("subscriptions", subscription.id, subscription.model_dump())
            tx.put("claims", claim.id, claim.model_dump())

        logger.info(
            "Warranty claim %s submitted by %s on %s (%s)",
            claim.id, user_id, claim.subscription_id, claim.service_category.value,
        )
        return claim

    # Administrative transitions

    def approve_claim(self, claim_id: str, admin_id: str, request: ApproveClaimRequest) -> WarrantyClaim:
        def apply(claim: WarrantyClaim, tx: UnitOfWork, now: datetime) -> None:
            claim.approved_by = admin_id
            claim.approved_at = now
            if request.admin_notes:
                claim.admin_notes = request.admin_notes.strip()

            # Consumption counter for the serviced category, separate from the claim unit
            subscription = self._locked_subscription(tx, claim)
            if subscription and self.ledger.record_usage(subscription, claim.service_category):
                tx.put("subscriptions", subscription.id, subscription.model_dump())

        claim = self._transition(claim_id, ClaimEvent.APPROVE, apply)
        logger.info("Warranty claim %s approved by %s", claim.id, admin_id)
        return claim

    def reject_claim(self, claim_id: str, admin_id: str, request: RejectClaimRequest) -> WarrantyClaim:
        reason = (request.rejection_reason or "").strip()
        if not reason:
            raise ValidationError("Rejection reason is required")

        def apply(claim: WarrantyClaim, tx: UnitOfWork, now: datetime) -> None:
            claim.rejected_by = admin_id
            claim.rejected_at = now
            claim.rejection_reason = reason

            subscription = self._locked_subscription(tx, claim)
            if subscription is None:
                logger.warning("Subscription %s missing; claim unit not refunded", claim.subscription_id)
                return
            self.ledger.credit(subscription, ServiceCategory.WARRANTY_CLAIM)
            tx.put("subscriptions", subscription.id, subscription.model_dump())

        claim = self._transition(claim_id, ClaimEvent.REJECT, apply)
        logger.info("Warranty claim %s rejected by %s: %s", claim.id, admin_id, reason)
        return claim

    def assign_vendor(self, claim_id: str, admin_id: str, request: AssignVendorRequest) -> WarrantyClaim:
        vendor_id = (request.vendor_id or "").strip()
        if not vendor_id:
            raise ValidationError("Vendor ID is required")
        if self.storage.get("vendors", vendor_id) is None:
            raise NotFound(f"Vendor {vendor_id} not found")

        def apply(claim: WarrantyClaim, tx: UnitOfWork, now: datetime) -> None:
            claim.assigned_vendor = vendor_id
            claim.assigned_by = admin_id
            claim.assigned_at = now

        claim = self._transition(claim_id, ClaimEvent.ASSIGN_VENDOR, apply)
        logger.info("Vendor %s assigned to warranty claim %s by %s", vendor_id, claim.id, admin_id)

        try:
            self.notifier.notify_vendor_assignment(vendor_id, claim)
        except Exception as e:
            # Don't fail the assignment if notification fails
            logger.error("Error notifying vendor %s of claim %s", vendor_id, claim.id, exc_info=e)
            self.storage.flag_for_reconciliation("vendor_notification", claim.id, str(e))
        return claim

    def complete_claim(self, claim_id: str, admin_id: str, request: CompleteClaimRequest) -> WarrantyClaim:
        billing = request.billing

        def apply(claim: WarrantyClaim, tx: UnitOfWork, now: datetime) -> None:
            claim.completed_by = admin_id
            claim.completed_at = now
            if request.completion_notes:
                claim.completion_notes = request.completion_notes.strip()
            claim.billing = billing
            if self._earning_due(claim):
                claim.earning_posted = EarningPosting.PENDING

        claim = self._transition(claim_id, ClaimEvent.COMPLETE, apply)
        logger.info("Warranty claim %s completed by %s", claim.id, admin_id)

        if claim.earning_posted == EarningPosting.PENDING:
            claim = self._post_earning(claim)
        return claim

    def reconcile_earning(self, claim_id: str) -> WarrantyClaim:
        """Retry a completed claim's wallet posting left pending or failed."""
        claim = self.get_claim(claim_id)
        if claim.status != ClaimStatus.COMPLETED:
            raise InvalidTransition("Only completed claims carry vendor earnings")
        if claim.earning_posted not in (EarningPosting.PENDING, EarningPosting.FAILED):
            return claim
        claim = self._post_earning(claim)
        if claim.earning_posted == EarningPosting.FAILED:
            raise DependencyFailure(f"Vendor earning for claim {claim.id} could not be posted")
        return claim

    # Reads

    def get_claim(self, claim_id: str, user_id: Optional[str] = None) -> WarrantyClaim:
        data = self.storage.get("claims", claim_id)
        if not data or (user_id is not None and data["user_id"] != user_id):
            raise NotFound("Warranty claim not found")
        return WarrantyClaim(**data)

    def list_user_claims(
        self, user_id: str, status: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> ClaimListResponse:
        return self.list_claims(status=status, page=page, limit=limit, user_id=user_id)

    def list_claims(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
        user_id: Optional[str] = None,
    ) -> ClaimListResponse:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")
        if sort_by not in SORT_FIELDS:
            raise ValidationError(f"Cannot sort by {sort_by}")
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sortOrder must be asc or desc")

        filters = {"user_id": user_id, "status": self._parse_status(status)}
        records, total = self.storage.query_claims(
            filters=filters,
            search=search,
            sort_by=SORT_FIELDS[sort_by],
            descending=sort_order == "desc",
            offset=(page - 1) * limit,
            limit=limit,
        )
        return ClaimListResponse(
            claims=[WarrantyClaim(**r) for r in records],
            pagination=Pagination.build(page, limit, total),
        )

    def claim_stats(self) -> ClaimStats:
        by_status = {status: self.storage.count_claims(status=status) for status in ClaimStatus}
        return ClaimStats(total=sum(by_status.values()), by_status=by_status)

    def get_usage(self, subscription_id: str, user_id: Optional[str] = None) -> UsageSummary:
        record = self.storage.find_subscription(subscription_id, user_id)
        if not record:
            raise NotFound("Subscription not found")
        return self.ledger.usage_summary(Subscription(**record))

    # Internals

    def _transition(
        self,
        claim_id: str,
        event: ClaimEvent,
        apply: Callable[[WarrantyClaim, UnitOfWork, datetime], None],
    ) -> WarrantyClaim:
        record = self.storage.get("claims", claim_id)
        if not record:
            raise NotFound("Warranty claim not found")

        with self.storage.transaction(self._subscription_key(record["subscription_id"])) as tx:
            claim = WarrantyClaim(**tx.get("claims", claim_id))
            target = TRANSITIONS.get((claim.status, event))
            if target is None:
                raise InvalidTransition(
                    f"Cannot {event.value.replace('_', ' ')} a claim in {claim.status.value} state"
                )
            now = datetime.now(timezone.utc)
            apply(claim, tx, now)
            claim.status = target
            claim.updated_at = now
            tx.put("claims", claim.id, claim.model_dump())
        return claim

    def _post_earning(self, claim: WarrantyClaim) -> WarrantyClaim:
        billing = claim.billing
        try:
            entry = self.wallet.post_earning(PostEarningRequest(
                vendor_id=claim.assigned_vendor,
                case_id=claim.case_id,
                description=f"Warranty claim completion earning - {claim.case_id}",
                **billing.model_dump(),
            ))
        except Exception as e:
            # The completion stands; the earning is left for reconciliation
            logger.error("Error posting vendor earning for claim %s", claim.id, exc_info=e)
            self.storage.flag_for_reconciliation("earning_posting", claim.id, str(e))
            return self._mark_earning(claim.id, EarningPosting.FAILED)
        return self._mark_earning(claim.id, EarningPosting.POSTED, entry.id)

    def _mark_earning(self, claim_id: str, posting: EarningPosting, entry_id: Optional[str] = None) -> WarrantyClaim:
        record = self.storage.get("claims", claim_id)
        with self.storage.transaction(self._subscription_key(record["subscription_id"])) as tx:
            claim = WarrantyClaim(**tx.get("claims", claim_id))
            claim.earning_posted = posting
            claim.earning_entry_id = entry_id
            claim.updated_at = datetime.now(timezone.utc)
            tx.put("claims", claim.id, claim.model_dump())
        return claim

    def _earning_due(self, claim: WarrantyClaim) -> bool:
        if not claim.billing or claim.billing.payment_method != PaymentMethod.ONLINE:
            return False
        if not claim.assigned_vendor:
            logger.warning("Claim %s completed with online payment but no assigned vendor", claim.id)
            return False
        return True

    def _locked_subscription(self, tx: UnitOfWork, claim: WarrantyClaim) -> Optional[Subscription]:
        record = self.storage.find_subscription(claim.subscription_id, claim.user_id)
        if not record:
            return None
        return Subscription(**tx.get("subscriptions", record["id"]))

    @staticmethod
    def _parse_status(status: Optional[str]) -> Optional[ClaimStatus]:
        if not status or status == "all":
            return None
        try:
            return ClaimStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown claim status {status}")

    @staticmethod
    def _subscription_key(subscription_id: str) -> str:
        return f"subscription:{subscription_id}"
