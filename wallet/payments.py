import hashlib
import hmac
import logging
from typing import Optional

from core.errors import ValidationError
from core.storage import InMemoryStorage

from .models import (
    PaymentMethod,
    PaymentVerificationRequest,
    PaymentVerificationResponse,
    PostEarningRequest,
)
from .service import WalletService

logger = logging.getLogger(__name__)


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    body = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    return hmac.compare_digest(compute_signature(order_id, payment_id, secret), signature)


class PaymentVerificationService:
    """Turns a verified gateway callback into a wallet earning for online jobs."""

    def __init__(self, wallet: WalletService, secret: str, storage: Optional[InMemoryStorage] = None):
        self.wallet = wallet
        self.secret = secret
        self.storage = storage or wallet.storage

    def handle_payment(self, request: PaymentVerificationRequest) -> PaymentVerificationResponse:
        if not self.secret:
            raise ValidationError("Payment verification service not configured")
        if not verify_signature(request.order_id, request.payment_id, request.signature, self.secret):
            logger.error(
                "Payment signature verification failed for order %s payment %s",
                request.order_id, request.payment_id,
            )
            raise ValidationError("Payment verification failed")

        response = PaymentVerificationResponse(
            message="Payment verified successfully",
            order_id=request.order_id,
            payment_id=request.payment_id,
            amount=request.amount,
        )

        billing = request.billing
        if not (billing and request.vendor_id and request.case_id):
            return response
        if billing.payment_method != PaymentMethod.ONLINE:
            return response

        try:
            entry = self.wallet.post_earning(PostEarningRequest(
                vendor_id=request.vendor_id,
                case_id=request.case_id,
                **billing.model_dump(),
            ))
        except Exception as e:
            # The payment itself is verified; the earning is reconciled later
            logger.error("Error adding vendor earning for case %s", request.case_id, exc_info=e)
            self.storage.flag_for_reconciliation("earning_posting", request.case_id, str(e))
            response.message = "Payment verified; vendor earning pending reconciliation"
            return response

        response.earning_posted = True
        response.entry = entry
        return response
