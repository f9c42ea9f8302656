"""
Unit Tests for the Earning Calculator

Tests cover:
1. Small-job rules for online and cash collection
2. Regular 50% labour split with pass-through components
3. GST extraction from inclusive amounts
4. Determinism and zero inputs
5. Cash collection deduction
"""

from decimal import Decimal

import pytest

from core.errors import ValidationError
from wallet.calculator import (
    FeeSchedule,
    calculate_cash_collection_deduction,
    calculate_earning,
)
from wallet.models import PaymentMethod


class TestSmallJobs:
    """Tests for jobs at or below the small-job threshold."""

    def test_online_small_job_deducts_fixed_fee(self):
        """Test that online small jobs pay net minus the fixed fee."""
        result = calculate_earning(Decimal("400"), payment_method=PaymentMethod.ONLINE)

        assert result.calculated_amount == Decimal("380.00")
        assert result.breakdown.percentage == "Fixed -20"

    def test_cash_small_job_pays_full_amount(self):
        """Test that cash small jobs pay the full net amount."""
        result = calculate_earning(Decimal("400"), payment_method=PaymentMethod.CASH)

        assert result.calculated_amount == Decimal("400.00")
        assert result.breakdown.percentage == "100%"

    def test_threshold_is_inclusive(self):
        """Test that a job exactly at the threshold counts as small."""
        result = calculate_earning(Decimal("500"), payment_method=PaymentMethod.ONLINE)

        assert result.calculated_amount == Decimal("480.00")

    def test_online_fee_never_goes_negative(self):
        """Test that a job smaller than the fee pays zero, not a negative amount."""
        result = calculate_earning(Decimal("10"), payment_method=PaymentMethod.ONLINE)

        assert result.calculated_amount == Decimal("0.00")


class TestRegularJobs:
    """Tests for the labour split on jobs above the threshold."""

    def test_labour_split_with_pass_through(self):
        """Test (net - spare - travel - booking) * 50% + spare + travel + booking."""
        result = calculate_earning(
            billing_amount=Decimal("1000"),
            spare_amount=Decimal("200"),
            travelling_amount=Decimal("100"),
            booking_amount=Decimal("50"),
            payment_method=PaymentMethod.ONLINE,
        )

        # (1000 - 350) * 0.5 + 350
        assert result.calculated_amount == Decimal("675.00")
        assert result.breakdown.base_amount == Decimal("650.00")
        assert result.breakdown.percentage == "50%"
        assert result.gst_amount == Decimal("0.00")

    def test_cash_and_online_share_formula(self):
        """Test that cash and online regular jobs use the same split."""
        online = calculate_earning(Decimal("900"), Decimal("100"), payment_method=PaymentMethod.ONLINE)
        cash = calculate_earning(Decimal("900"), Decimal("100"), payment_method=PaymentMethod.CASH)

        assert online.calculated_amount == cash.calculated_amount == Decimal("500.00")

    def test_components_exceeding_net_do_not_go_negative(self):
        """Test that the labour base is floored at zero."""
        result = calculate_earning(Decimal("600"), spare_amount=Decimal("700"))

        assert result.breakdown.base_amount == Decimal("0.00")
        assert result.calculated_amount == Decimal("700.00")

    def test_custom_fee_schedule(self):
        """Test that the vendor share comes from the fee schedule."""
        schedule = FeeSchedule(vendor_share=Decimal("0.70"))

        result = calculate_earning(Decimal("1000"), schedule=schedule)

        assert result.calculated_amount == Decimal("700.00")
        assert result.breakdown.percentage == "70%"


class TestGstExtraction:
    """Tests for GST-inclusive amounts."""

    def test_gst_extracted_from_inclusive_amount(self):
        """Test that GST is taken out of the gross rather than added on top."""
        result = calculate_earning(Decimal("1180"), gst_included=True)

        assert result.net_billing_amount == Decimal("1000.00")
        assert result.gst_amount == Decimal("180.00")
        assert result.calculated_amount == Decimal("500.00")

    def test_net_plus_gst_equals_gross(self):
        """Test that extraction does not lose or invent money when rounding."""
        result = calculate_earning(Decimal("1000"), gst_included=True)

        assert result.net_billing_amount + result.gst_amount == Decimal("1000")

    def test_online_with_spares(self):
        """Test the online GST-inclusive completion used by the wallet tests."""
        result = calculate_earning(
            billing_amount=Decimal("1000"),
            spare_amount=Decimal("200"),
            payment_method=PaymentMethod.ONLINE,
            gst_included=True,
        )

        assert result.net_billing_amount == Decimal("847.46")
        assert result.gst_amount == Decimal("152.54")
        # (847.46 - 200) * 0.5 + 200
        assert result.calculated_amount == Decimal("523.73")

    def test_gst_can_pull_job_below_threshold(self):
        """Test that the small-job rule applies to the net amount."""
        result = calculate_earning(Decimal("590"), gst_included=True, payment_method=PaymentMethod.CASH)

        assert result.net_billing_amount == Decimal("500.00")
        assert result.calculated_amount == Decimal("500.00")


class TestPurity:
    """Tests for determinism and edge inputs."""

    def test_identical_inputs_identical_outputs(self):
        """Test that repeated calls agree exactly."""
        args = (Decimal("1234.56"), Decimal("100"), Decimal("50"), Decimal("0"), PaymentMethod.ONLINE, True)

        first = calculate_earning(*args)
        second = calculate_earning(*args)

        assert first == second

    @pytest.mark.parametrize("method", [PaymentMethod.ONLINE, PaymentMethod.CASH])
    def test_all_zero_inputs(self, method):
        """Test that all-zero inputs yield zero outputs without raising."""
        result = calculate_earning(0, 0, 0, 0, method, True)

        assert result.calculated_amount == Decimal("0")
        assert result.gst_amount == Decimal("0")

    def test_negative_amount_rejected(self):
        """Test that negative components are a validation error."""
        with pytest.raises(ValidationError):
            calculate_earning(Decimal("100"), spare_amount=Decimal("-1"))


class TestCashCollectionDeduction:
    """Tests for the platform share owed on cash-collected jobs."""

    def test_platform_share_plus_booking(self):
        """Test (net - spare - travel - booking) * 50% + booking."""
        result = calculate_cash_collection_deduction(
            billing_amount=Decimal("1000"),
            spare_amount=Decimal("200"),
            booking_amount=Decimal("100"),
        )

        # (1000 - 300) * 0.5 + 100
        assert result.calculated_amount == Decimal("450.00")
        assert result.payment_method == PaymentMethod.CASH
