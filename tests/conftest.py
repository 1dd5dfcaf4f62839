"""
conftest.py — Shared pytest fixtures for the invest_ledger test suite.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlparse

import pytest

from invest_ledger.accruals import AccrualBook
from invest_ledger.audit import AuditLog
from invest_ledger.ledger import ProjectLedger
from invest_ledger.project import InvestmentProject
from invest_ledger.shares import ShareEngine


class FrozenClock:
    """Deterministic clock; tests move it forward explicitly."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current += timedelta(**delta)
        return self.current


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ("" if body is None else str(body))
        self.reason = "Fake"

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body


class FakeSession:
    """
    Stand-in for ``requests.Session``.

    Responses are queued per (METHOD, path) or produced by ``handler``;
    every call is recorded in ``calls``.
    """

    def __init__(self, handler=None) -> None:
        self.headers: dict[str, str] = {}
        self.calls: list[dict[str, Any]] = []
        self.queued: dict[tuple[str, str], list[Any]] = {}
        self.handler = handler

    def queue(self, method: str, path: str, *responses: Any) -> None:
        self.queued.setdefault((method.upper(), path), []).extend(responses)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        path = urlparse(url).path.removeprefix("/api")
        self.calls.append({"method": method.upper(), "path": path, "url": url, **kwargs})
        pending = self.queued.get((method.upper(), path))
        if pending:
            outcome = pending.pop(0)
        elif self.handler is not None:
            outcome = self.handler(method.upper(), path, kwargs)
        else:
            outcome = FakeResponse(404, {"message": f"no route {method} {path}"})
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def audit_log(clock: FrozenClock) -> AuditLog:
    return AuditLog(clock=clock)


@pytest.fixture
def project() -> InvestmentProject:
    """100k GBP project with a 10% admin cost."""
    return InvestmentProject(
        id="proj-1",
        title="Mill Lane Refurbishment",
        currency="GBP",
        project_amount=100_000,
        admin_cost=10,
        project_duration=2,
    )


@pytest.fixture
def engine(project: InvestmentProject, audit_log: AuditLog) -> ShareEngine:
    return ShareEngine(project, audit_log)


@pytest.fixture
def funded_engine(engine: ShareEngine) -> ShareEngine:
    """Alice 60k (5% agent commission) and Bob 40k: fully funded."""
    engine.add_participant("inv-a", 60_000, commission_rate=5, investor_name="Alice", participant_id="part-a")
    engine.add_participant("inv-b", 40_000, investor_name="Bob", participant_id="part-b")
    return engine


@pytest.fixture
def book(project: InvestmentProject, audit_log: AuditLog) -> AccrualBook:
    return AccrualBook(project, audit_log)


@pytest.fixture
def ledger(project: InvestmentProject, clock: FrozenClock) -> ProjectLedger:
    return ProjectLedger(project, clock=clock)


@pytest.fixture
def funded_ledger(ledger: ProjectLedger) -> ProjectLedger:
    ledger.add_participant("inv-a", 60_000, commission_rate=5, investor_name="Alice", participant_id="part-a")
    ledger.add_participant("inv-b", 40_000, investor_name="Bob", participant_id="part-b")
    return ledger


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()
