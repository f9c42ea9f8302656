"""
Warranty Claim Workflow

This module provides:
- The claim lifecycle: pending → approved | rejected → in_progress → completed
- Entitlement debit on submission and refund on rejection
- Vendor assignment with best-effort notification
- Vendor earning posting on online-paid completion
"""

from .models import (
    ClaimStatus,
    ClaimEvent,
    EarningPosting,
    TRANSITIONS,
    WarrantyClaim,
)
from .service import ClaimService
from .notifications import VendorNotifier

__all__ = [
    "ClaimStatus",
    "ClaimEvent",
    "EarningPosting",
    "TRANSITIONS",
    "WarrantyClaim",
    "ClaimService",
    "VendorNotifier",
]
