"""Tests for invest_ledger.formatting — currency strings and labels."""
from __future__ import annotations

from decimal import Decimal

import pytest

from invest_ledger.audit import InvestmentEvent, ProfitPaymentEvent, TransactionType
from invest_ledger.formatting import (
    PLACEHOLDER,
    describe_event,
    event_amount,
    format_currency,
    format_percent,
    is_known_currency,
    transaction_label,
)


class TestFormatCurrency:
    def test_gbp(self):
        assert format_currency(Decimal("1234.5"), "GBP") == "£1,234.50"

    def test_lower_case_code(self):
        assert format_currency(27_000, "gbp") == "£27,000.00"

    def test_unknown_code_falls_back(self):
        assert not is_known_currency("ZZZ")
        assert format_currency(1234.5, "ZZZ") == "ZZZ 1,234.50"

    def test_none_placeholder(self):
        assert format_currency(None) == PLACEHOLDER == "-"

    def test_percent(self):
        assert format_percent(Decimal("60")) == "60.00%"
        assert format_percent(None) == PLACEHOLDER


class TestTransactionLabel:
    @pytest.mark.parametrize(
        "kind, label",
        [
            ("profitPayment", "Payout"),
            ("commissionCalculated", "Agent Commission"),
            ("adminCostDeclared", "Admin Cost"),
            (TransactionType.INVESTMENT_UPDATED, "Project Update"),
            ("someNewThing", "Some New Thing"),
            (None, "Transaction"),
        ],
    )
    def test_labels(self, kind, label):
        assert transaction_label(kind) == label

    def test_every_type_has_a_label(self):
        for kind in TransactionType:
            assert transaction_label(kind)


class TestDescribeEvent:
    def test_investment(self):
        named = InvestmentEvent(investment_id="p", investor_name="Alice", value=Decimal("10"))
        anonymous = InvestmentEvent(investment_id="p", value=Decimal("10"))
        assert describe_event(named) == "Investment from Alice"
        assert describe_event(anonymous) == "Initial Investment Added"

    def test_payment_amount(self):
        payment = ProfitPaymentEvent(investment_id="p", paid_amount=Decimal("200"), note="")
        assert describe_event(payment) == "Payment of 200"
        assert event_amount(payment) == Decimal("200")
