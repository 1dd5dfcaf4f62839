"""
money.py — Pure Decimal arithmetic for project capital, shares and sale splits.

Depends only on: errors.py
All functions are stateless and have no side effects.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Sequence

from babel.numbers import get_currency_precision

from invest_ledger.errors import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENT_PLACES = Decimal("0.01")

Number = int | float | str | Decimal


# ---------------------------------------------------------------------------
# Conversion and rounding
# ---------------------------------------------------------------------------

def to_decimal(value: Number | None, field: str = "amount") -> Decimal:
    """
    Convert a user or API supplied number to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. NaN, infinities, booleans
    and unparsable strings raise ValidationError.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    return result


def currency_precision(currency: str) -> int:
    """Number of minor-unit digits for an ISO 4217 code (2 when unknown)."""
    return get_currency_precision((currency or "").upper())


def minor_unit(currency: str) -> Decimal:
    """Smallest representable amount, e.g. Decimal('0.01') for GBP."""
    return Decimal(1).scaleb(-currency_precision(currency))


def quantize_money(amount: Number, currency: str = "GBP") -> Decimal:
    """Round to the currency's minor unit using ROUND_HALF_UP."""
    return to_decimal(amount).quantize(minor_unit(currency), rounding=ROUND_HALF_UP)


def validate_percent(value: Number, field: str = "rate") -> Decimal:
    """Return value as Decimal, requiring 0 <= value <= 100."""
    pct = to_decimal(value, field)
    if pct < ZERO or pct > HUNDRED:
        raise ValidationError(f"{field} must be between 0 and 100, got {pct}", field=field)
    return pct


def validate_positive(value: Number, field: str = "amount") -> Decimal:
    amount = to_decimal(value, field)
    if amount <= ZERO:
        raise ValidationError(f"{field} must be greater than 0", field=field)
    return amount


# ---------------------------------------------------------------------------
# Shares
# ---------------------------------------------------------------------------

def share_fraction(participant_amount: Number, denominator: Number) -> Decimal:
    """Unrounded ownership fraction in [0, 1] (amount / denominator)."""
    denom = to_decimal(denominator, "denominator")
    if denom <= ZERO:
        raise ValidationError("share denominator must be greater than 0", field="denominator")
    return to_decimal(participant_amount) / denom


def compute_share(participant_amount: Number, denominator: Number) -> Decimal:
    """
    Percentage of a project owned by a participant.

    share = 100 * participant_amount / denominator, rounded to 2 dp.

    Parameters
    ----------
    participant_amount:
        Capital contributed by the participant.
    denominator:
        The project's share base (total active committed capital).

    Returns
    -------
    Decimal
        Percentage, e.g. Decimal('60.00').
    """
    pct = HUNDRED * share_fraction(participant_amount, denominator)
    return pct.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Sale split
# ---------------------------------------------------------------------------

def gross_profit(sale_amount: Number, project_amount: Number, currency: str = "GBP") -> Decimal:
    """Sale amount minus cost basis. Negative means a loss."""
    return quantize_money(sale_amount, currency) - quantize_money(project_amount, currency)


def admin_fee(gross: Number, admin_cost_percent: Number, currency: str = "GBP") -> Decimal:
    """Platform fee: charged only on a genuine gain, zero on a loss."""
    gross = to_decimal(gross, "gross_profit")
    pct = validate_percent(admin_cost_percent, "admin_cost")
    if gross <= ZERO:
        return quantize_money(ZERO, currency)
    return quantize_money(gross * pct / HUNDRED, currency)


def net_distributable(gross: Number, fee: Number) -> Decimal:
    """Gross profit less admin fee; exact, no rounding at this step."""
    return to_decimal(gross, "gross_profit") - to_decimal(fee, "admin_fee")


def commission_amount(payout: Number, rate_percent: Number, currency: str = "GBP") -> Decimal:
    """Agent commission on a positive payout; losses carry no commission."""
    payout = to_decimal(payout, "payout")
    rate = validate_percent(rate_percent, "agent_commission_rate")
    if payout <= ZERO:
        return quantize_money(ZERO, currency)
    return quantize_money(payout * rate / HUNDRED, currency)


def allocate_pro_rata(
    total: Number,
    weights: Sequence[Number],
    currency: str = "GBP",
) -> list[Decimal]:
    """
    Split ``total`` across ``weights`` in proportion, in minor units.

    Each slice is rounded half-up; the aggregate rounding drift is added to
    the slice with the largest weight (first one on ties), so the result
    always sums to ``total`` exactly.

    Parameters
    ----------
    total:
        Amount to split (may be negative).
    weights:
        Non-negative weights, e.g. contributed capital or share percentages.
    currency:
        Currency whose minor unit governs rounding.

    Returns
    -------
    list[Decimal]
        One amount per weight, in input order.
    """
    total = quantize_money(total, currency)
    w = [to_decimal(x, "weight") for x in weights]
    if not w:
        raise ValidationError("cannot allocate across zero participants")
    if any(x < ZERO for x in w):
        raise ValidationError("allocation weights cannot be negative")
    weight_sum = sum(w, ZERO)
    if weight_sum <= ZERO:
        raise ValidationError("allocation weights must sum to more than 0")

    slices = [quantize_money(total * x / weight_sum, currency) for x in w]
    drift = total - sum(slices, ZERO)
    if drift:
        largest = max(range(len(w)), key=lambda i: w[i])
        slices[largest] += drift
    return slices
