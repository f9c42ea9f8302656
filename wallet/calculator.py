"""
Vendor earning arithmetic.

Pure functions over Decimal amounts: no storage, no clock, no logging.
Identical inputs always give identical results.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from core.errors import ValidationError

from .models import EarningBreakdown, EarningResult, PaymentMethod

CENT = Decimal("0.01")
ZERO = Decimal("0")

Amount = Union[Decimal, int, str]


@dataclass(frozen=True)
class FeeSchedule:
    """Platform fee and tax parameters applied to a completed job."""
    gst_rate: Decimal = Decimal("0.18")
    vendor_share: Decimal = Decimal("0.50")
    small_job_threshold: Decimal = Decimal("500")
    online_small_job_fee: Decimal = Decimal("20")

    def __post_init__(self):
        if self.gst_rate < 0:
            raise ValueError("gst_rate must be >= 0")
        if not (ZERO <= self.vendor_share <= 1):
            raise ValueError("vendor_share must be between 0 and 1")
        if self.small_job_threshold < 0 or self.online_small_job_fee < 0:
            raise ValueError("small job parameters must be >= 0")

    @classmethod
    def from_settings(cls, settings) -> "FeeSchedule":
        return cls(
            gst_rate=settings.GST_RATE,
            vendor_share=settings.VENDOR_SHARE,
            small_job_threshold=settings.SMALL_JOB_THRESHOLD,
            online_small_job_fee=settings.ONLINE_SMALL_JOB_FEE,
        )


DEFAULT_FEE_SCHEDULE = FeeSchedule()


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _to_amount(name: str, value: Amount) -> Decimal:
    amount = Decimal(str(value))
    if amount < 0:
        raise ValidationError(f"{name} must be non-negative")
    return amount


def extract_gst(gross: Decimal, gst_included: bool, schedule: FeeSchedule) -> tuple[Decimal, Decimal]:
    """Split a billed amount into (net, gst). A GST-inclusive gross carries the tax inside it."""
    if not gst_included:
        return gross, ZERO
    net = quantize(gross / (1 + schedule.gst_rate))
    return net, gross - net


def calculate_earning(
    billing_amount: Amount,
    spare_amount: Amount = ZERO,
    travelling_amount: Amount = ZERO,
    booking_amount: Amount = ZERO,
    payment_method: PaymentMethod = PaymentMethod.ONLINE,
    gst_included: bool = False,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> EarningResult:
    """Vendor payable for a completed job, net of platform share and GST.

    Small jobs (net at or below the threshold) pay the vendor the full net
    amount, less a fixed fee when collected online. Larger jobs split the
    labour portion (net minus spares, travel and booking) by the vendor
    share; pass-through components are paid in full.
    """
    billing = _to_amount("billing_amount", billing_amount)
    spare = _to_amount("spare_amount", spare_amount)
    travelling = _to_amount("travelling_amount", travelling_amount)
    booking = _to_amount("booking_amount", booking_amount)
    method = PaymentMethod(payment_method)

    net, gst = extract_gst(billing, gst_included, schedule)
    base = max(ZERO, net - spare - travelling - booking)

    if net <= schedule.small_job_threshold:
        if method == PaymentMethod.ONLINE:
            calculated = max(ZERO, net - schedule.online_small_job_fee)
            percentage = f"Fixed -{schedule.online_small_job_fee}"
        else:
            calculated = net
            percentage = "100%"
    else:
        calculated = base * schedule.vendor_share + spare + travelling + booking
        percentage = f"{(schedule.vendor_share * 100).normalize():f}%"

    return EarningResult(
        billing_amount=billing,
        net_billing_amount=net,
        spare_amount=spare,
        travelling_amount=travelling,
        booking_amount=booking,
        gst_included=gst_included,
        payment_method=method,
        gst_amount=quantize(gst),
        calculated_amount=quantize(calculated),
        breakdown=EarningBreakdown(
            base_amount=quantize(base),
            percentage=percentage,
            spare_amount=spare,
            travelling_amount=travelling,
            booking_amount=booking,
            gst_amount=quantize(gst),
        ),
    )


def calculate_cash_collection_deduction(
    billing_amount: Amount,
    spare_amount: Amount = ZERO,
    travelling_amount: Amount = ZERO,
    booking_amount: Amount = ZERO,
    gst_included: bool = False,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> EarningResult:
    """Platform share owed back by a vendor who collected the job in cash.

    The booking amount was already paid to the platform by the customer,
    so it is deducted in full on top of the platform's labour share.
    """
    billing = _to_amount("billing_amount", billing_amount)
    spare = _to_amount("spare_amount", spare_amount)
    travelling = _to_amount("travelling_amount", travelling_amount)
    booking = _to_amount("booking_amount", booking_amount)

    net, gst = extract_gst(billing, gst_included, schedule)
    base = max(ZERO, net - spare - travelling - booking)
    calculated = base * (1 - schedule.vendor_share) + booking
    platform_share = f"{((1 - schedule.vendor_share) * 100).normalize():f}%"

    return EarningResult(
        billing_amount=billing,
        net_billing_amount=net,
        spare_amount=spare,
        travelling_amount=travelling,
        booking_amount=booking,
        gst_included=gst_included,
        payment_method=PaymentMethod.CASH,
        gst_amount=quantize(gst),
        calculated_amount=quantize(calculated),
        breakdown=EarningBreakdown(
            base_amount=quantize(base),
            percentage=platform_share,
            spare_amount=spare,
            travelling_amount=travelling,
            booking_amount=booking,
            gst_amount=quantize(gst),
        ),
    )
