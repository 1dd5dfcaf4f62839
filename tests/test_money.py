"""Tests for invest_ledger.money — pure Decimal math."""
from __future__ import annotations

from decimal import Decimal

import pytest

from invest_ledger.errors import ValidationError
from invest_ledger.money import (
    admin_fee,
    allocate_pro_rata,
    commission_amount,
    compute_share,
    currency_precision,
    gross_profit,
    minor_unit,
    net_distributable,
    quantize_money,
    to_decimal,
    validate_percent,
    validate_positive,
)


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

class TestToDecimal:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_accepts_strings_and_ints(self):
        assert to_decimal(" 250.75 ") == Decimal("250.75")
        assert to_decimal(3) == Decimal("3")

    @pytest.mark.parametrize("bad", [None, True, "abc", float("nan"), float("inf")])
    def test_rejects_garbage(self, bad):
        with pytest.raises(ValidationError):
            to_decimal(bad)

    def test_error_carries_field(self):
        with pytest.raises(ValidationError) as info:
            to_decimal("x", field="paidAmount")
        assert info.value.field == "paidAmount"


class TestQuantize:
    def test_half_up(self):
        assert quantize_money("10.005") == Decimal("10.01")
        assert quantize_money("10.004") == Decimal("10.00")

    def test_zero_decimal_currency(self):
        assert currency_precision("JPY") == 0
        assert quantize_money("1234.5", "JPY") == Decimal("1235")

    def test_minor_unit(self):
        assert minor_unit("GBP") == Decimal("0.01")

    def test_unknown_currency_defaults_to_two_places(self):
        assert currency_precision("ZZZ") == 2


class TestValidators:
    def test_percent_bounds(self):
        assert validate_percent(0) == Decimal("0")
        assert validate_percent(100) == Decimal("100")
        with pytest.raises(ValidationError):
            validate_percent(100.01)
        with pytest.raises(ValidationError):
            validate_percent(-1)

    def test_positive(self):
        assert validate_positive("0.01") == Decimal("0.01")
        with pytest.raises(ValidationError):
            validate_positive(0)


# ---------------------------------------------------------------------------
# Shares
# ---------------------------------------------------------------------------

class TestComputeShare:
    def test_sixty_forty(self):
        assert compute_share(60_000, 100_000) == Decimal("60.00")
        assert compute_share(40_000, 100_000) == Decimal("40.00")

    def test_rounds_to_two_places(self):
        assert compute_share(1, 3) == Decimal("33.33")
        assert compute_share(2, 3) == Decimal("66.67")

    def test_zero_denominator_raises(self):
        with pytest.raises(ValidationError):
            compute_share(10, 0)


# ---------------------------------------------------------------------------
# Sale split
# ---------------------------------------------------------------------------

class TestSaleSplitMath:
    def test_gain(self):
        gross = gross_profit(150_000, 100_000)
        fee = admin_fee(gross, 10)
        assert gross == Decimal("50000.00")
        assert fee == Decimal("5000.00")
        assert net_distributable(gross, fee) == Decimal("45000.00")

    def test_loss_has_no_fee(self):
        gross = gross_profit(80_000, 100_000)
        fee = admin_fee(gross, 10)
        assert fee == Decimal("0.00")
        assert net_distributable(gross, fee) == gross == Decimal("-20000.00")

    def test_conservation_with_odd_percent(self):
        gross = gross_profit("1000.01", 0)
        fee = admin_fee(gross, "12.5")
        assert fee + net_distributable(gross, fee) == gross

    def test_commission_only_on_positive_payout(self):
        assert commission_amount(27_000, 5) == Decimal("1350.00")
        assert commission_amount(-12_000, 5) == Decimal("0.00")


class TestAllocateProRata:
    def test_exact_split(self):
        assert allocate_pro_rata(45_000, [60_000, 40_000]) == [Decimal("27000.00"), Decimal("18000.00")]

    def test_drift_goes_to_largest_weight(self):
        assert allocate_pro_rata(100, [1, 3, 1]) == [Decimal("20.00"), Decimal("60.00"), Decimal("20.00")]
        slices = allocate_pro_rata(100, [1, 1, 1])
        assert slices == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
        assert sum(slices) == Decimal("100.00")

    def test_negative_total(self):
        slices = allocate_pro_rata(-20_000, [60, 40])
        assert slices == [Decimal("-12000.00"), Decimal("-8000.00")]

    def test_sum_is_exact_for_awkward_weights(self):
        weights = [7, 11, 13, 17, 19]
        slices = allocate_pro_rata("999.99", weights)
        assert sum(slices) == Decimal("999.99")

    @pytest.mark.parametrize("weights", [[], [0, 0], [10, -1]])
    def test_invalid_weights(self, weights):
        with pytest.raises(ValidationError):
            allocate_pro_rata(100, weights)
