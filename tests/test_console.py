"""Tests for invest_ledger.console — load, validate, persist and reload against a fake backend."""
from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import FakeResponse, FakeSession
from invest_ledger.accruals import AccrualStatus
from invest_ledger.client import InvestmentApiClient
from invest_ledger.config import LedgerConfig
from invest_ledger.console import InvestmentConsole
from invest_ledger.errors import RemoteFailure, ValidationError


class FakeBackend:
    """In-memory stand-in for the investment REST backend."""

    def __init__(self) -> None:
        self.project = {
            "_id": "proj-1",
            "title": "Mill Lane Refurbishment",
            "currencyType": "GBP",
            "projectAmount": 150_000,
            "adminCost": 10,
            "status": "active",
        }
        self.participants = [
            {
                "_id": "part-a",
                "investorId": {"_id": "inv-a", "name": "Alice"},
                "investmentId": "proj-1",
                "amount": 60_000,
                "agentCommissionRate": 5,
                "totalDue": 500,
                "status": "active",
            },
            {
                "_id": "part-b",
                "investorId": {"_id": "inv-b", "name": "Bob"},
                "investmentId": "proj-1",
                "amount": 40_000,
                "status": "active",
            },
        ]
        self.transactions = [
            {
                "_id": "tx-1",
                "investmentId": "proj-1",
                "investorId": {"_id": "inv-a", "name": "Alice"},
                "participantId": "part-a",
                "month": "2024-03",
                "profit": 500,
                "monthlyTotalDue": 500,
                "monthlyTotalPaid": 0,
                "status": "due",
                "paymentLog": [],
                "logs": [],
            }
        ]
        self.fail_writes = False

    @staticmethod
    def _ok(data, status=200) -> FakeResponse:
        return FakeResponse(status, {"data": data})

    @staticmethod
    def _page(records) -> FakeResponse:
        return FakeResponse(200, {"data": {"result": list(records), "meta": {"totalPage": 1, "total": len(records)}}})

    def __call__(self, method, path, kwargs) -> FakeResponse:
        if method != "GET" and self.fail_writes:
            return FakeResponse(500, {"message": "database unavailable"})
        body = kwargs.get("json") or {}

        if path == "/investments/proj-1":
            if method == "PATCH":
                self.project.update(body)
            return self._ok(self.project)
        if path == "/investment-participants":
            if method == "POST":
                record = {
                    "_id": f"part-{len(self.participants) + 1}",
                    "investorId": body["investorId"],
                    "investmentId": body["investmentId"],
                    "amount": body["amount"],
                    "agentCommissionRate": body["agentCommissionRate"],
                    "status": "active",
                }
                self.participants.append(record)
                return self._ok(record, 201)
            return self._page(self.participants)
        if path == "/transactions":
            return self._page(self.transactions)
        if path.startswith("/transactions/") and method == "PATCH":
            tx = next(t for t in self.transactions if t["_id"] == path.rsplit("/", 1)[1])
            tx["paymentLog"].append(
                {"paidAmount": body["paidAmount"], "note": body.get("note", ""), "createdAt": "2024-03-20T10:00:00Z"}
            )
            tx["monthlyTotalPaid"] += body["paidAmount"]
            tx["status"] = "paid" if tx["monthlyTotalPaid"] >= tx["monthlyTotalDue"] else "partial"
            return self._ok(tx)
        return FakeResponse(404, {"message": f"no route {method} {path}"})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def session(backend: FakeBackend) -> FakeSession:
    return FakeSession(handler=backend)


@pytest.fixture
def console(session: FakeSession) -> InvestmentConsole:
    config = LedgerConfig(base_url="https://backend.test/api", max_workers=2)
    return InvestmentConsole(config, client=InvestmentApiClient(config, session=session))


def _writes(session: FakeSession) -> list[dict]:
    return [c for c in session.calls if c["method"] != "GET"]


class TestLoad:
    def test_builds_shares(self, console):
        ledger = console.load("proj-1")
        assert ledger.participant("part-a").project_share == Decimal("60.00")
        assert ledger.participant("part-b").project_share == Decimal("40.00")
        assert ledger.book.get("tx-1").status is AccrualStatus.DUE

    def test_cached_without_refresh(self, console, session):
        first = console.load("proj-1")
        n_calls = len(session.calls)
        assert console.load("proj-1", refresh=False) is first
        assert len(session.calls) == n_calls


class TestParticipantWrites:
    def test_over_ceiling_sends_nothing(self, console, session):
        with pytest.raises(ValidationError):
            console.add_participant("proj-1", "inv-c", 60_000)
        assert _writes(session) == []

    def test_add_posts_camel_case(self, console, session):
        carol = console.add_participant("proj-1", "inv-c", 25_000, commission_rate=2)
        (post,) = _writes(session)
        assert post["path"] == "/investment-participants"
        assert post["json"] == {
            "investorId": "inv-c",
            "investmentId": "proj-1",
            "amount": 25000.0,
            "agentCommissionRate": 2.0,
        }
        assert carol.investor_id == "inv-c"
        assert console.load("proj-1").participant("part-a").project_share == Decimal("48.00")

    def test_raise_sends_absolute_amount(self, console, session):
        console.raise_participant_capital("proj-1", "part-b", 10_000)
        (patch,) = _writes(session)
        assert patch["path"] == "/investment-participants/part-b"
        assert patch["json"] == {"amount": 50000.0}


class TestSale:
    def test_declare_sale_patches_project(self, console, session):
        distribution = console.declare_sale("proj-1", 250_000)
        (patch,) = _writes(session)
        assert patch["path"] == "/investments/proj-1"
        assert patch["json"] == {"saleAmount": 250000.0}
        assert distribution.payout_for("inv-a").amount == Decimal("54000.00")

    def test_remote_failure_propagates(self, console, backend):
        console.load("proj-1")
        backend.fail_writes = True
        with pytest.raises(RemoteFailure) as info:
            console.declare_sale("proj-1", 250_000)
        assert info.value.status_code == 500
        assert "proj-1" not in console._ledgers


class TestPayments:
    def test_record_payment_round_trip(self, console, session):
        accrual = console.record_payment("proj-1", "tx-1", 200, note="March")
        (patch,) = _writes(session)
        assert patch["path"] == "/transactions/tx-1"
        assert patch["json"] == {"paidAmount": 200.0, "note": "March"}
        assert accrual.monthly_total_paid == Decimal("200")
        assert accrual.status is AccrualStatus.PARTIAL

    def test_statement_frame(self, console):
        df = console.monthly_statement("proj-1", "inv-a", 2024)
        assert list(df["month"]) == ["2024-03"]
        assert df.loc[0, "outstanding"] == 500.0
