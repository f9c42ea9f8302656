import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from core.errors import NotFound, ValidationError
from core.storage import InMemoryStorage, UnitOfWork

from .calculator import (
    DEFAULT_FEE_SCHEDULE,
    FeeSchedule,
    calculate_cash_collection_deduction,
    calculate_earning,
)
from .models import (
    CashCollectionRequest,
    EntryType,
    LedgerHistoryResponse,
    ManualAdjustmentRequest,
    MonthlyStats,
    PaymentMethod,
    PenaltyRequest,
    PenaltyType,
    PostEarningRequest,
    WalletEntry,
    WalletSummary,
)

logger = logging.getLogger(__name__)

SUMMARY_TOTALS = {
    EntryType.EARNING: "total_earnings",
    EntryType.PENALTY: "total_penalties",
    EntryType.CASH_COLLECTION: "total_cash_collections",
    EntryType.MANUAL_ADJUSTMENT: "total_adjustments",
}


class WalletService:
    """Append-only vendor wallet ledger with a cached running balance.

    Entries are never edited. The cached summary is updated in the same
    unit of work as the entry it reflects, so current_balance always
    equals the sum of the vendor's entry amounts.
    """

    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        fee_schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
        currency: str = "INR",
    ):
        self.storage = storage or InMemoryStorage()
        self.fee_schedule = fee_schedule
        self.currency = currency

    def post_earning(self, request: PostEarningRequest) -> WalletEntry:
        idempotency_key = f"earning:{request.vendor_id}:{request.case_id}"

        with self.storage.transaction(self._wallet_key(request.vendor_id)) as tx:
            existing = self._check_idempotency(tx, idempotency_key)
            if existing:
                logger.warning(
                    "Duplicate earning prevented for vendor %s case %s",
                    request.vendor_id, request.case_id,
                )
                return existing

            result = calculate_earning(
                request.billing_amount,
                request.spare_amount,
                request.travelling_amount,
                request.booking_amount,
                request.payment_method,
                request.gst_included,
                schedule=self.fee_schedule,
            )
            entry = self._append(
                tx,
                vendor_id=request.vendor_id,
                entry_type=EntryType.EARNING,
                amount=result.calculated_amount,
                case_id=request.case_id,
                payment_method=result.payment_method,
                billing_amount=result.billing_amount,
                spare_amount=result.spare_amount,
                travelling_amount=result.travelling_amount,
                booking_amount=result.booking_amount,
                gst_included=result.gst_included,
                gst_amount=result.gst_amount,
                calculated_amount=result.calculated_amount,
                idempotency_key=idempotency_key,
                description=request.description or f"Task completion earning - {request.case_id}",
                metadata={"breakdown": result.breakdown.model_dump(mode="json")},
            )

        logger.info(
            "Posted earning %s for vendor %s case %s",
            entry.calculated_amount, entry.vendor_id, entry.case_id,
        )
        return entry

    def apply_penalty(self, vendor_id: str, request: PenaltyRequest) -> WalletEntry:
        with self.storage.transaction(self._wallet_key(vendor_id)) as tx:
            entry = self._append(
                tx,
                vendor_id=vendor_id,
                entry_type=EntryType.PENALTY,
                amount=-request.amount,
                case_id=request.case_id,
                payment_method=PaymentMethod.SYSTEM,
                calculated_amount=-request.amount,
                description=request.description,
                metadata={"penalty_type": request.penalty_type.value},
            )
        logger.info("Applied %s penalty of %s to vendor %s", request.penalty_type.value, request.amount, vendor_id)
        return entry

    def post_cash_collection(self, request: CashCollectionRequest) -> WalletEntry:
        if not request.vendor_id:
            raise ValidationError("Vendor ID is required")
        idempotency_key = f"cash_collection:{request.vendor_id}:{request.case_id}"

        with self.storage.transaction(self._wallet_key(request.vendor_id)) as tx:
            existing = self._check_idempotency(tx, idempotency_key)
            if existing:
                logger.warning("Duplicate cash collection prevented for case %s", request.case_id)
                return existing

            result = calculate_cash_collection_deduction(
                request.billing_amount,
                request.spare_amount,
                request.travelling_amount,
                request.booking_amount,
                request.gst_included,
                schedule=self.fee_schedule,
            )
            entry = self._append(
                tx,
                vendor_id=request.vendor_id,
                entry_type=EntryType.CASH_COLLECTION,
                amount=-result.calculated_amount,
                case_id=request.case_id,
                payment_method=PaymentMethod.CASH,
                billing_amount=result.billing_amount,
                spare_amount=result.spare_amount,
                travelling_amount=result.travelling_amount,
                booking_amount=result.booking_amount,
                gst_included=result.gst_included,
                gst_amount=result.gst_amount,
                calculated_amount=-result.calculated_amount,
                idempotency_key=idempotency_key,
                description=request.description or f"Cash collection deduction - {request.case_id}",
            )
        return entry

    def manual_adjustment(self, vendor_id: str, request: ManualAdjustmentRequest) -> WalletEntry:
        if request.amount == 0:
            raise ValidationError("Adjustment amount must be non-zero")
        with self.storage.transaction(self._wallet_key(vendor_id)) as tx:
            entry = self._append(
                tx,
                vendor_id=vendor_id,
                entry_type=EntryType.MANUAL_ADJUSTMENT,
                amount=request.amount,
                payment_method=PaymentMethod.SYSTEM,
                calculated_amount=request.amount,
                description=request.description,
                metadata={"performed_by": request.performed_by},
            )
        return entry

    def get_balance(self, vendor_id: str) -> WalletSummary:
        summary = self.storage.get("wallets", vendor_id)
        if summary is None:
            return WalletSummary(vendor_id=vendor_id, currency=self.currency)
        return WalletSummary(**summary)

    def recalculate_balance(self, vendor_id: str) -> WalletSummary:
        """Rebuild the cached summary from the entries themselves."""
        with self.storage.transaction(self._wallet_key(vendor_id)) as tx:
            summary = WalletSummary(vendor_id=vendor_id, currency=self.currency)
            entries = sorted(self.storage.entries_for_vendor(vendor_id), key=lambda e: e["created_at"])
            for data in entries:
                self._fold(summary, WalletEntry(**data))
            tx.put("wallets", vendor_id, summary.model_dump())
        logger.info("Recalculated wallet for vendor %s: balance %s", vendor_id, summary.current_balance)
        return summary

    def get_ledger_history(self, vendor_id: str, limit: int = 50, offset: int = 0) -> LedgerHistoryResponse:
        all_entries = [WalletEntry(**e) for e in self.storage.entries_for_vendor(vendor_id)]
        all_entries.sort(key=lambda e: e.created_at, reverse=True)
        paginated = all_entries[offset:offset + limit]

        return LedgerHistoryResponse(
            vendor_id=vendor_id,
            entries=paginated,
            total_count=len(all_entries),
            current_balance=self.get_balance(vendor_id).current_balance,
        )

    def get_entry(self, entry_id: str, vendor_id: Optional[str] = None) -> WalletEntry:
        data = self.storage.get("wallet_entries", entry_id)
        if not data or (vendor_id is not None and data["vendor_id"] != vendor_id):
            raise NotFound(f"Wallet entry {entry_id} not found")
        return WalletEntry(**data)

    def monthly_stats(self, vendor_id: str, year: int, month: int) -> MonthlyStats:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")
        stats = MonthlyStats(vendor_id=vendor_id, year=year, month=month)
        for data in self.storage.entries_for_vendor(vendor_id):
            entry = WalletEntry(**data)
            if entry.created_at.year != year or entry.created_at.month != month:
                continue
            attr = SUMMARY_TOTALS[entry.entry_type]
            amount = entry.amount if entry.entry_type in (EntryType.EARNING, EntryType.MANUAL_ADJUSTMENT) else abs(entry.amount)
            setattr(stats, attr, getattr(stats, attr) + amount)
            stats.transaction_count += 1
        return stats

    def _append(
        self,
        tx: UnitOfWork,
        vendor_id: str,
        entry_type: EntryType,
        amount: Decimal,
        payment_method: PaymentMethod,
        calculated_amount: Decimal,
        description: str,
        case_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        metadata: Optional[dict] = None,
        **components,
    ) -> WalletEntry:
        summary_data = tx.get("wallets", vendor_id)
        summary = WalletSummary(**summary_data) if summary_data else WalletSummary(vendor_id=vendor_id, currency=self.currency)

        entry = WalletEntry(
            id=str(uuid4()),
            vendor_id=vendor_id,
            case_id=case_id,
            entry_type=entry_type,
            amount=amount,
            balance_after=summary.current_balance + amount,
            payment_method=payment_method,
            calculated_amount=calculated_amount,
            idempotency_key=idempotency_key,
            description=description,
            created_at=datetime.now(timezone.utc),
            metadata=metadata or {},
            **components,
        )
        self._fold(summary, entry)

        tx.put("wallet_entries", entry.id, entry.model_dump())
        tx.put("wallets", vendor_id, summary.model_dump())
        if idempotency_key:
            tx.put("idempotency_index", idempotency_key, entry.id)
        return entry

    @staticmethod
    def _fold(summary: WalletSummary, entry: WalletEntry) -> None:
        summary.current_balance += entry.amount
        summary.total_entries += 1
        summary.last_transaction_at = entry.created_at

        attr = SUMMARY_TOTALS[entry.entry_type]
        delta = entry.amount if entry.entry_type in (EntryType.EARNING, EntryType.MANUAL_ADJUSTMENT) else -entry.amount
        setattr(summary, attr, getattr(summary, attr) + delta)

        if entry.entry_type == EntryType.EARNING:
            summary.total_tasks_completed += 1
        elif entry.entry_type == EntryType.PENALTY:
            penalty_type = entry.metadata.get("penalty_type")
            if penalty_type in (PenaltyType.REJECTION.value, PenaltyType.AUTO_REJECTION.value):
                summary.total_tasks_rejected += 1
            elif penalty_type == PenaltyType.CANCELLATION.value:
                summary.total_tasks_cancelled += 1

    def _check_idempotency(self, tx: UnitOfWork, idempotency_key: str) -> Optional[WalletEntry]:
        entry_id = tx.get("idempotency_index", idempotency_key)
        if entry_id:
            entry_data = tx.get("wallet_entries", entry_id)
            if entry_data:
                return WalletEntry(**entry_data)
        return None

    @staticmethod
    def _wallet_key(vendor_id: str) -> str:
        return f"wallet:{vendor_id}"
