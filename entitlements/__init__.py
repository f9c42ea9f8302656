"""
Entitlement Ledger for AMC Subscriptions

This module provides:
- Typed per-category quota records (limit / used / remaining)
- Policy-minimum backfill applied once at load time
- Debit and credit of claim units with the remaining-count invariant
"""

from .models import (
    UNLIMITED,
    ServiceCategory,
    QuotaOverridePolicy,
    Entitlement,
    Subscription,
)
from .ledger import EntitlementLedger

__all__ = [
    "UNLIMITED",
    "ServiceCategory",
    "QuotaOverridePolicy",
    "Entitlement",
    "Subscription",
    "EntitlementLedger",
]
