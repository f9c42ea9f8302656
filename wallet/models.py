from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field

from core.models import CamelModel


class PaymentMethod(str, Enum):
    ONLINE = "online"
    CASH = "cash"
    SYSTEM = "system"


class EntryType(str, Enum):
    EARNING = "earning"
    PENALTY = "penalty"
    CASH_COLLECTION = "cash_collection"
    MANUAL_ADJUSTMENT = "manual_adjustment"


class PenaltyType(str, Enum):
    REJECTION = "rejection"
    CANCELLATION = "cancellation"
    AUTO_REJECTION = "auto_rejection"
    OTHER = "other"


class EarningBreakdown(CamelModel):
    base_amount: Decimal
    percentage: str
    spare_amount: Decimal
    travelling_amount: Decimal
    booking_amount: Decimal
    gst_amount: Decimal


class EarningResult(CamelModel):
    billing_amount: Decimal
    net_billing_amount: Decimal
    spare_amount: Decimal
    travelling_amount: Decimal
    booking_amount: Decimal
    gst_included: bool
    payment_method: PaymentMethod
    gst_amount: Decimal
    calculated_amount: Decimal
    breakdown: EarningBreakdown


class JobBilling(CamelModel):
    billing_amount: Decimal = Field(..., ge=0)
    spare_amount: Decimal = Field(default=Decimal("0"), ge=0)
    travelling_amount: Decimal = Field(default=Decimal("0"), ge=0)
    booking_amount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    gst_included: bool = False


class PostEarningRequest(JobBilling):
    vendor_id: str = Field(..., min_length=1)
    case_id: str = Field(..., min_length=1)
    description: Optional[str] = None


class PenaltyRequest(CamelModel):
    case_id: Optional[str] = None
    amount: Decimal = Field(..., gt=0)
    penalty_type: PenaltyType = PenaltyType.OTHER
    description: str = Field(..., min_length=1)


class CashCollectionRequest(CamelModel):
    vendor_id: Optional[str] = None
    case_id: str = Field(..., min_length=1)
    billing_amount: Decimal = Field(..., ge=0)
    spare_amount: Decimal = Field(default=Decimal("0"), ge=0)
    travelling_amount: Decimal = Field(default=Decimal("0"), ge=0)
    booking_amount: Decimal = Field(default=Decimal("0"), ge=0)
    gst_included: bool = False
    description: Optional[str] = None


class ManualAdjustmentRequest(CamelModel):
    amount: Decimal
    description: str = Field(..., min_length=1)
    performed_by: Optional[str] = None


class WalletEntry(CamelModel):
    id: str
    vendor_id: str
    case_id: Optional[str] = None
    entry_type: EntryType
    amount: Decimal
    balance_after: Decimal
    payment_method: PaymentMethod
    billing_amount: Decimal = Decimal("0")
    spare_amount: Decimal = Decimal("0")
    travelling_amount: Decimal = Decimal("0")
    booking_amount: Decimal = Decimal("0")
    gst_included: bool = False
    gst_amount: Decimal = Decimal("0")
    calculated_amount: Decimal
    idempotency_key: Optional[str] = None
    description: str
    created_at: datetime
    metadata: dict = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class WalletSummary(CamelModel):
    vendor_id: str
    currency: str = "INR"
    current_balance: Decimal = Decimal("0")
    total_earnings: Decimal = Decimal("0")
    total_penalties: Decimal = Decimal("0")
    total_cash_collections: Decimal = Decimal("0")
    total_adjustments: Decimal = Decimal("0")
    total_tasks_completed: int = 0
    total_tasks_rejected: int = 0
    total_tasks_cancelled: int = 0
    total_entries: int = 0
    last_transaction_at: Optional[datetime] = None


class MonthlyStats(CamelModel):
    success: bool = True
    message: str = "Monthly wallet statistics retrieved"
    vendor_id: str
    year: int
    month: int
    total_earnings: Decimal = Decimal("0")
    total_penalties: Decimal = Decimal("0")
    total_cash_collections: Decimal = Decimal("0")
    total_adjustments: Decimal = Decimal("0")
    transaction_count: int = 0


class WalletEntryResponse(CamelModel):
    success: bool = True
    message: str
    entry: WalletEntry


class WalletSummaryResponse(CamelModel):
    success: bool = True
    message: str
    wallet: WalletSummary


class LedgerHistoryResponse(CamelModel):
    success: bool = True
    message: str = "Wallet transactions retrieved"
    vendor_id: str
    entries: list[WalletEntry]
    total_count: int
    current_balance: Decimal


class PaymentVerificationRequest(CamelModel):
    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    vendor_id: Optional[str] = None
    case_id: Optional[str] = None
    billing: Optional[JobBilling] = None


class PaymentVerificationResponse(CamelModel):
    success: bool = True
    message: str
    order_id: str
    payment_id: str
    amount: Decimal
    earning_posted: bool = False
    entry: Optional[WalletEntry] = None
