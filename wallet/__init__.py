"""
Vendor Wallet Ledger

This module provides:
- A pure earning calculator (platform share, GST extraction)
- Immutable wallet entries with a cached running balance
- Idempotent earning posting per (vendor, case)
- Penalties, cash-collection deductions and manual adjustments
- Payment-gateway signature verification that triggers online earnings
"""

from .models import (
    PaymentMethod,
    EntryType,
    PenaltyType,
    EarningResult,
    WalletEntry,
    WalletSummary,
)
from .calculator import FeeSchedule, calculate_earning, calculate_cash_collection_deduction
from .service import WalletService
from .payments import PaymentVerificationService

__all__ = [
    "PaymentMethod",
    "EntryType",
    "PenaltyType",
    "EarningResult",
    "WalletEntry",
    "WalletSummary",
    "FeeSchedule",
    "calculate_earning",
    "calculate_cash_collection_deduction",
    "WalletService",
    "PaymentVerificationService",
]
