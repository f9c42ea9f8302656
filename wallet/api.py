from fastapi import APIRouter, Depends, Header, Request, status

from .models import (
    CashCollectionRequest,
    LedgerHistoryResponse,
    ManualAdjustmentRequest,
    MonthlyStats,
    PaymentVerificationRequest,
    PaymentVerificationResponse,
    PenaltyRequest,
    WalletEntryResponse,
    WalletSummaryResponse,
)
from .payments import PaymentVerificationService
from .service import WalletService

router = APIRouter()


def get_wallet_service(request: Request) -> WalletService:
    return request.app.state.wallet_service


def get_payment_service(request: Request) -> PaymentVerificationService:
    return request.app.state.payment_service


@router.get("/vendors/{vendor_id}/wallet", response_model=WalletSummaryResponse, tags=["Wallet"])
def get_wallet(vendor_id: str, wallet: WalletService = Depends(get_wallet_service)):
    return WalletSummaryResponse(message="Wallet retrieved", wallet=wallet.get_balance(vendor_id))


@router.get("/vendors/{vendor_id}/wallet/transactions", response_model=LedgerHistoryResponse, tags=["Wallet"])
def get_wallet_transactions(
    vendor_id: str,
    limit: int = 50,
    offset: int = 0,
    wallet: WalletService = Depends(get_wallet_service),
):
    return wallet.get_ledger_history(vendor_id, limit, offset)


@router.get(
    "/vendors/{vendor_id}/wallet/transactions/{entry_id}",
    response_model=WalletEntryResponse,
    tags=["Wallet"],
)
def get_wallet_transaction(vendor_id: str, entry_id: str, wallet: WalletService = Depends(get_wallet_service)):
    entry = wallet.get_entry(entry_id, vendor_id)
    return WalletEntryResponse(message="Wallet transaction found", entry=entry)


@router.get("/vendors/{vendor_id}/wallet/monthly/{year}/{month}", response_model=MonthlyStats, tags=["Wallet"])
def get_monthly_stats(vendor_id: str, year: int, month: int, wallet: WalletService = Depends(get_wallet_service)):
    return wallet.monthly_stats(vendor_id, year, month)


@router.post(
    "/admin/vendors/{vendor_id}/penalties",
    response_model=WalletEntryResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Wallet"],
)
def apply_penalty(
    vendor_id: str,
    body: PenaltyRequest,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    wallet: WalletService = Depends(get_wallet_service),
):
    entry = wallet.apply_penalty(vendor_id, body)
    return WalletEntryResponse(message="Penalty applied successfully", entry=entry)


@router.post(
    "/admin/vendors/{vendor_id}/cash-collections",
    response_model=WalletEntryResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Wallet"],
)
def post_cash_collection(
    vendor_id: str,
    body: CashCollectionRequest,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    wallet: WalletService = Depends(get_wallet_service),
):
    entry = wallet.post_cash_collection(body.model_copy(update={"vendor_id": vendor_id}))
    return WalletEntryResponse(message="Cash collection deduction recorded", entry=entry)


@router.post(
    "/admin/vendors/{vendor_id}/adjustments",
    response_model=WalletEntryResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Wallet"],
)
def manual_adjustment(
    vendor_id: str,
    body: ManualAdjustmentRequest,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    wallet: WalletService = Depends(get_wallet_service),
):
    if not body.performed_by:
        body.performed_by = admin_id
    entry = wallet.manual_adjustment(vendor_id, body)
    return WalletEntryResponse(message="Wallet adjusted successfully", entry=entry)


@router.post("/admin/vendors/{vendor_id}/wallet/recalculate", response_model=WalletSummaryResponse, tags=["Wallet"])
def recalculate_wallet(
    vendor_id: str,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    wallet: WalletService = Depends(get_wallet_service),
):
    return WalletSummaryResponse(message="Wallet balance recalculated", wallet=wallet.recalculate_balance(vendor_id))


@router.post("/payments/verify", response_model=PaymentVerificationResponse, tags=["Payments"])
def verify_payment(body: PaymentVerificationRequest, payments: PaymentVerificationService = Depends(get_payment_service)):
    return payments.handle_payment(body)
