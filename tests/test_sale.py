"""Tests for invest_ledger.sale — the sale profit split and its declaration."""
from __future__ import annotations

from decimal import Decimal

import pytest

from invest_ledger.audit import TransactionType
from invest_ledger.errors import ValidationError
from invest_ledger.project import EntityStatus, InvestmentProject
from invest_ledger.sale import compute_sale_distribution, declare_sale, preview_sale
from invest_ledger.shares import Participant, ShareEngine

T = TransactionType


def _participants(*amounts, rates=None):
    rates = rates or [0] * len(amounts)
    return [
        Participant(id=f"p{i}", investor_id=f"inv-{i}", investment_id="proj-1", amount=a, agent_commission_rate=r)
        for i, (a, r) in enumerate(zip(amounts, rates))
    ]


# ---------------------------------------------------------------------------
# Pure calculation
# ---------------------------------------------------------------------------

class TestComputeSaleDistribution:
    def test_reference_scenario(self):
        d = compute_sale_distribution(150_000, 100_000, 10, _participants(60_000, 40_000))
        assert d.gross_profit == Decimal("50000.00")
        assert d.admin_fee == Decimal("5000.00")
        assert d.net_distributable == Decimal("45000.00")
        assert [p.amount for p in d.payouts] == [Decimal("27000.00"), Decimal("18000.00")]
        assert d.total_paid_out == d.net_distributable

    def test_conservation(self):
        d = compute_sale_distribution("123456.78", "100000", "7.25", _participants(1, 2, 4))
        assert d.admin_fee + d.net_distributable == d.gross_profit
        assert sum(p.amount for p in d.payouts) == d.net_distributable

    def test_loss_has_no_fee(self):
        d = compute_sale_distribution(80_000, 100_000, 10, _participants(60_000, 40_000, rates=[5, 5]))
        assert d.is_loss
        assert d.admin_fee == Decimal("0.00")
        assert d.net_distributable == d.gross_profit == Decimal("-20000.00")
        assert [p.amount for p in d.payouts] == [Decimal("-12000.00"), Decimal("-8000.00")]
        assert d.total_commission == Decimal("0")

    def test_commission_is_exposure_only(self):
        d = compute_sale_distribution(150_000, 100_000, 10, _participants(60_000, 40_000, rates=[5, 0]))
        a, b = d.payouts
        assert a.amount == Decimal("27000.00")
        assert a.commission == Decimal("1350.00")
        assert b.commission == Decimal("0.00")

    def test_rounding_drift_to_largest(self):
        d = compute_sale_distribution(400, 300, 0, _participants(100, 100, 100))
        assert [p.amount for p in d.payouts] == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]

    def test_blocked_participants_excluded(self):
        people = _participants(60_000, 40_000)
        people[1].status = EntityStatus.BLOCK
        d = compute_sale_distribution(150_000, 100_000, 10, people)
        assert len(d.payouts) == 1
        assert d.payouts[0].amount == Decimal("45000.00")

    @pytest.mark.parametrize("sale", [0, -1])
    def test_rejects_non_positive_sale(self, sale):
        with pytest.raises(ValidationError):
            compute_sale_distribution(sale, 100, 10, _participants(100))

    def test_rejects_no_participants(self):
        with pytest.raises(ValidationError):
            compute_sale_distribution(150, 100, 10, [])

    def test_frame(self):
        df = compute_sale_distribution(150_000, 100_000, 10, _participants(60_000, 40_000)).to_frame()
        assert list(df.columns) == ["investor_id", "investor_name", "share", "payout", "commission_rate", "commission"]
        assert df["payout"].sum() == pytest.approx(45_000.0)


# ---------------------------------------------------------------------------
# Declaration
# ---------------------------------------------------------------------------

class TestDeclareSale:
    def test_preview_mutates_nothing(self, project, funded_engine, audit_log):
        before = len(audit_log)
        d = preview_sale(project, funded_engine, 150_000)
        assert d.distribution_id is None
        assert project.sale_amount is None
        assert len(audit_log) == before

    def test_events_in_order_with_one_batch_id(self, project, funded_engine, book, audit_log):
        before = len(audit_log)
        d = declare_sale(project, funded_engine, book, audit_log, 150_000)
        assert [e.transaction_type for e in d.events] == [
            T.SALE_DECLARED, T.GROSS_PROFIT, T.ADMIN_COST_DECLARED, T.NET_PROFIT,
            T.PROFIT_DISTRIBUTED, T.PROFIT_DISTRIBUTED, T.COMMISSION_CALCULATED,
        ]
        assert {e.distribution_id for e in d.events} == {d.distribution_id}
        assert len({e.created_at for e in d.events}) == 1
        assert len(audit_log) == before + len(d.events)
        assert project.sale_amount == Decimal("150000.00")

    def test_payouts_accrue_for_payment(self, project, funded_engine, book, audit_log):
        declare_sale(project, funded_engine, book, audit_log, 150_000)
        alice = book.find("inv-a", "2024-03")
        assert alice.monthly_total_due == Decimal("27000.00")
        assert funded_engine.get("part-a").total_due == Decimal("27000.00")
        book.record_payment(alice.id, 27_000, funded_engine.get("part-a"))
        assert alice.is_paid

    def test_latest_distribution_matches(self, project, funded_engine, book, audit_log):
        d = declare_sale(project, funded_engine, book, audit_log, 150_000)
        latest = audit_log.latest_distribution(project.id)
        assert latest.distribution_id == d.distribution_id
        assert latest.total_net_profit == Decimal("45000.00")
        assert latest.payouts == {"inv-a": Decimal("27000.00"), "inv-b": Decimal("18000.00")}
        assert latest.investor_names == {"inv-a": "Alice", "inv-b": "Bob"}

    def test_second_declaration_rejected(self, project, funded_engine, book, audit_log):
        declare_sale(project, funded_engine, book, audit_log, 150_000)
        count = len(audit_log)
        with pytest.raises(ValidationError):
            declare_sale(project, funded_engine, book, audit_log, 160_000)
        assert len(audit_log) == count
        assert project.sale_amount == Decimal("150000.00")

    def test_rejected_sale_leaves_no_trace(self, project, funded_engine, book, audit_log):
        alice = funded_engine.get("part-a")
        march = book.accrue(alice, 100, month="2024-03")
        book.record_payment(march.id, 100, alice)
        count = len(audit_log)

        with pytest.raises(ValidationError):
            declare_sale(project, funded_engine, book, audit_log, 150_000)
        assert len(audit_log) == count
        assert project.sale_amount is None
        assert not project.is_sold
        assert alice.total_due == Decimal("0.00")
        assert book.find("inv-b", "2024-03") is None

    def test_shared_display_name(self, project, engine, book, audit_log):
        engine.add_participant("inv-1", 60_000, investor_name="Sam Smith")
        engine.add_participant("inv-2", 40_000, investor_name="Sam Smith")
        d = declare_sale(project, engine, book, audit_log, 150_000)
        latest = audit_log.latest_distribution(project.id)
        assert latest.payouts == {"inv-1": Decimal("27000.00"), "inv-2": Decimal("18000.00")}
        assert latest.total_paid_out == d.net_distributable

    def test_loss_records_negative_distribution_without_accruals(self, project, funded_engine, book, audit_log):
        d = declare_sale(project, funded_engine, book, audit_log, 80_000)
        assert T.COMMISSION_CALCULATED not in [e.transaction_type for e in d.events]
        assert book.accruals == []
        assert audit_log.latest_distribution(project.id).payouts["inv-a"] == Decimal("-12000.00")

    def test_rejects_empty_and_blocked(self, project, engine, book, audit_log):
        with pytest.raises(ValidationError):
            declare_sale(project, engine, book, audit_log, 150_000)
        engine.add_participant("inv-a", 100)
        project.set_status("block", audit_log)
        with pytest.raises(ValidationError):
            declare_sale(project, engine, book, audit_log, 150_000)
        assert project.sale_amount is None

    def test_capital_frozen_after_sale(self, project, funded_engine, book, audit_log):
        declare_sale(project, funded_engine, book, audit_log, 150_000)
        with pytest.raises(ValidationError):
            funded_engine.raise_participant_capital("part-b", 1)

    def test_zero_decimal_currency(self, audit_log):
        project = InvestmentProject(id="proj-1", title="Tokyo", currency="JPY", project_amount=1_000)
        engine = ShareEngine(project, audit_log)
        for investor in ("a", "b", "c"):
            engine.add_participant(investor, 333)
        d = compute_sale_distribution(2_000, project.project_amount, 0, engine.active(), "JPY")
        assert [p.amount for p in d.payouts] == [Decimal("334"), Decimal("333"), Decimal("333")]
