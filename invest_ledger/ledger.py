"""
ledger.py — ProjectLedger: one project's participants, accruals, sale and audit log.

Depends on: config.py, audit.py, project.py, shares.py, accruals.py, sale.py, statements.py
"""
from __future__ import annotations

import functools
import logging
import threading
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, TypeVar

import pandas as pd

from invest_ledger.accruals import AccrualBook, MonthlyAccrual
from invest_ledger.audit import AuditEvent, AuditLog, Clock, LatestDistribution, TransactionType
from invest_ledger.config import LedgerConfig
from invest_ledger.errors import NotFoundError
from invest_ledger.project import EntityStatus, InvestmentProject
from invest_ledger.sale import SaleDistribution, declare_sale, preview_sale
from invest_ledger.shares import Participant, ShareEngine
from invest_ledger import statements

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _locked(method: F) -> F:
    """Run a ProjectLedger method inside the ledger's re-entrant lock."""

    @functools.wraps(method)
    def wrapper(self: "ProjectLedger", *args: Any, **kwargs: Any) -> Any:
        with self.lock:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class ProjectLedger:
    """
    Single-writer view of one investment project.

    Every mutation runs under ``self.lock`` so share recomputation and a sale
    declaration see a consistent participant set.

        ledger = ProjectLedger(InvestmentProject(id="p1", title="Mill Lane", project_amount=100_000, admin_cost=10))
        a = ledger.add_participant("inv-a", 60_000, investor_name="Alice")
        b = ledger.add_participant("inv-b", 40_000, investor_name="Bob")
        ledger.declare_sale(150_000).payout_for("inv-a").amount   # Decimal('27000.00')
    """

    def __init__(
        self,
        project: InvestmentProject,
        participants: Iterable[Participant] = (),
        accruals: Iterable[MonthlyAccrual] = (),
        events: Iterable[AuditEvent] = (),
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.config = config or LedgerConfig()
        self.project = project
        self.lock = threading.RLock()
        self.audit_log = AuditLog(
            events,
            clock=clock,
            distribution_window_seconds=self.config.distribution_window_seconds,
        )
        self.engine = ShareEngine(project, self.audit_log, participants)
        self.book = AccrualBook(project, self.audit_log, accruals)

    # ------------------------------------------------------------------
    # Construction from backend records
    # ------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        project: dict[str, Any],
        participants: Iterable[dict[str, Any]] = (),
        transactions: Iterable[dict[str, Any]] = (),
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None,
    ) -> "ProjectLedger":
        """
        Rebuild a ledger from ``/investments``, ``/investment-participants``
        and ``/transactions`` payloads.

        The audit log is replayed from every transaction's ``logs[]`` and
        ``paymentLog[]`` in chronological order.
        """
        accruals = [MonthlyAccrual.from_dict(t) for t in transactions]
        events: list[AuditEvent] = [e for a in accruals for e in (*a.logs, *a.payment_log)]
        events.sort(key=lambda e: (e.created_at is None, e.created_at))
        ledger = cls(
            InvestmentProject.from_dict(project),
            participants=[Participant.from_dict(p) for p in participants],
            accruals=accruals,
            events=events,
            config=config,
            clock=clock,
        )
        log.debug("Loaded %r", ledger)
        return ledger

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    @property
    def participants(self) -> list[Participant]:
        return self.engine.participants

    def participant(self, participant_id: str) -> Participant:
        return self.engine.get(participant_id)

    @_locked
    def add_participant(
        self,
        investor_id: str,
        amount: Any,
        commission_rate: Any = 0,
        investor_name: Optional[str] = None,
        participant_id: Optional[str] = None,
    ) -> Participant:
        return self.engine.add_participant(
            investor_id,
            amount,
            commission_rate=commission_rate,
            investor_name=investor_name,
            participant_id=participant_id,
        )

    @_locked
    def raise_participant_capital(
        self,
        participant_id: str,
        additional_amount: Any,
        expected_version: Optional[int] = None,
    ) -> Participant:
        return self.engine.raise_participant_capital(participant_id, additional_amount, expected_version)

    @_locked
    def update_commission_rate(
        self,
        participant_id: str,
        rate_percent: Any,
        expected_version: Optional[int] = None,
    ) -> Participant:
        return self.engine.update_commission_rate(participant_id, rate_percent, expected_version)

    @_locked
    def set_participant_status(
        self,
        participant_id: str,
        status: EntityStatus | str,
        expected_version: Optional[int] = None,
    ) -> Participant:
        return self.engine.set_status(participant_id, status, expected_version)

    # ------------------------------------------------------------------
    # Project-level updates
    # ------------------------------------------------------------------

    @_locked
    def raise_capital(self, additional_amount: Any) -> Decimal:
        return self.project.raise_capital(additional_amount, self.audit_log)

    @_locked
    def edit_project(self, **changes: Any) -> InvestmentProject:
        return self.project.edit(self.audit_log, **changes)

    @_locked
    def set_project_status(self, status: EntityStatus | str) -> InvestmentProject:
        return self.project.set_status(status, self.audit_log)

    @_locked
    def revalue(self, market_value: Any) -> Decimal:
        return self.project.revalue(market_value, self.audit_log)

    # ------------------------------------------------------------------
    # Accruals and payments
    # ------------------------------------------------------------------

    @_locked
    def accrue(self, participant_id: str, profit: Any, month: Optional[str] = None) -> MonthlyAccrual:
        return self.book.accrue(self.engine.get(participant_id), profit, month=month)

    @_locked
    def record_payment(
        self,
        accrual_id: str,
        paid_amount: Any,
        note: str = "",
        expected_version: Optional[int] = None,
    ) -> MonthlyAccrual:
        accrual = self.book.get(accrual_id)
        participant = self._owner_of(accrual)
        participant.check_version(expected_version)
        return self.book.record_payment(accrual_id, paid_amount, participant, note=note)

    @_locked
    def close_participant(self, participant_id: str, expected_version: Optional[int] = None) -> Participant:
        """Terminal close of one position; remaining shares are re-derived."""
        participant = self.engine.get(participant_id)
        participant.check_version(expected_version)
        self.book.close_project(participant)
        self.engine.recompute_shares()
        return participant

    def _owner_of(self, accrual: MonthlyAccrual) -> Participant:
        if accrual.participant_id:
            return self.engine.get(accrual.participant_id)
        owner = self.engine.find_active_for_investor(accrual.investor_id)
        if owner is not None:
            return owner
        for participant in self.engine.participants:
            if participant.investor_id == accrual.investor_id:
                return participant
        raise NotFoundError(f"no participant owns accrual {accrual.id}")

    # ------------------------------------------------------------------
    # Sale
    # ------------------------------------------------------------------

    def preview_sale(self, sale_amount: Any) -> SaleDistribution:
        with self.lock:
            return preview_sale(self.project, self.engine, sale_amount)

    @_locked
    def declare_sale(self, sale_amount: Any) -> SaleDistribution:
        return declare_sale(self.project, self.engine, self.book, self.audit_log, sale_amount)

    def latest_distribution(self) -> Optional[LatestDistribution]:
        return self.audit_log.latest_distribution(self.project.id)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def events(
        self,
        investor_id: Optional[str] = None,
        month: Optional[str] = None,
        year: Optional[int] = None,
        types: Optional[Iterable[TransactionType | str]] = None,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        newest_first: bool = True,
    ) -> list[AuditEvent]:
        return self.audit_log.query(
            investment_id=self.project.id,
            investor_id=investor_id,
            month=month,
            year=year,
            types=types,
            start=start,
            end=end,
            newest_first=newest_first,
        )

    def monthly_statement(self, investor_id: str, year: int) -> list[statements.StatementRow]:
        return statements.monthly_statement(self.book, investor_id, year)

    def participants_frame(self) -> pd.DataFrame:
        return statements.participants_frame(self.engine)

    def history_frame(self, **filters: Any) -> pd.DataFrame:
        return statements.transaction_history(self.audit_log, investment_id=self.project.id, **filters)

    def summary(self) -> dict[str, Any]:
        return {
            "project_id": self.project.id,
            "title": self.project.title,
            "currency": self.project.currency,
            "project_amount": self.project.project_amount,
            "total_committed": self.engine.total_committed(),
            "remaining_capacity": self.engine.remaining_capacity(),
            "n_active": len(self.engine.active()),
            "sale_amount": self.project.sale_amount,
            "market_value": self.project.market_value,
            "total_amount_paid": self.project.total_amount_paid,
            "total_outstanding": self.book.total_outstanding(),
            "n_events": len(self.audit_log),
        }

    def __repr__(self) -> str:
        return (
            f"ProjectLedger(project={self.project.id!r}, participants={len(self.engine)}, "
            f"accruals={len(self.book.accruals)}, events={len(self.audit_log)})"
        )
