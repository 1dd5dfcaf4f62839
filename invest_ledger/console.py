"""
console.py — InvestmentConsole: admin operations against the backend.

Depends on: config.py, errors.py, client.py, ledger.py, statements.py
Every write follows the same cycle under a per-project lock: load the
project from the backend, apply the operation to a local ProjectLedger (which
validates it), persist the change, then reload.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from decimal import Decimal
from typing import Any, Callable, Optional, TypeVar

import pandas as pd

from invest_ledger import statements
from invest_ledger.accruals import MonthlyAccrual
from invest_ledger.client import InvestmentApiClient
from invest_ledger.config import LedgerConfig
from invest_ledger.errors import LedgerError, NotFoundError
from invest_ledger.ledger import ProjectLedger
from invest_ledger.project import EntityStatus
from invest_ledger.sale import SaleDistribution
from invest_ledger.shares import Participant

log = logging.getLogger(__name__)

T = TypeVar("T")

_PROJECT_FIELDS = {
    "title": "title",
    "details": "details",
    "admin_cost": "adminCost",
    "currency": "currencyType",
    "project_duration": "projectDuration",
    "installment_number": "installmentNumber",
}


class InvestmentConsole:
    """
    Admin-facing facade over the REST backend.

        console = InvestmentConsole(LedgerConfig.from_env())
        ledger = console.load("65f0c2...")
        console.add_participant(ledger.project.id, "inv-42", 25_000, commission_rate=2)
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        client: Optional[InvestmentApiClient] = None,
    ) -> None:
        self.config = config or LedgerConfig()
        self.client = client or InvestmentApiClient(self.config)
        self._ledgers: dict[str, ProjectLedger] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _project_lock(self, investment_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(investment_id, threading.Lock())

    def load(self, investment_id: str, refresh: bool = True) -> ProjectLedger:
        """
        Fetch project, participants and transactions in parallel and build a ledger.

        With ``refresh=False`` a previously loaded ledger is returned as is.
        """
        if not refresh and investment_id in self._ledgers:
            return self._ledgers[investment_id]

        fetches: dict[str, Callable[[], Any]] = {
            "project": lambda: self.client.get_investment(investment_id),
            "participants": lambda: self.client.fetch_all("list_participants", investment_id=investment_id),
            "transactions": lambda: self.client.fetch_all("list_transactions", investment_id=investment_id),
        }
        results: dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {executor.submit(fn): name for name, fn in fetches.items()}
            for future in as_completed(futures):
                results[futures[future]] = future.result()

        ledger = ProjectLedger.from_records(
            results["project"],
            results["participants"],
            results["transactions"],
            config=self.config,
        )
        self._ledgers[investment_id] = ledger
        return ledger

    def _mutate(
        self,
        investment_id: str,
        action: str,
        apply: Callable[[ProjectLedger], T],
        persist: Callable[[ProjectLedger, T], Any],
    ) -> tuple[ProjectLedger, T]:
        with self._project_lock(investment_id):
            ledger = self.load(investment_id)
            try:
                result = apply(ledger)
                persist(ledger, result)
            except LedgerError as exc:
                # the local ledger may hold half of the change
                self._ledgers.pop(investment_id, None)
                log.warning("%s on project %s rejected: %s", action, investment_id, exc)
                raise
            log.info("%s on project %s persisted", action, investment_id)
            return self.load(investment_id), result

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def add_participant(
        self,
        investment_id: str,
        investor_id: str,
        amount: Any,
        commission_rate: Any = 0,
        investor_name: Optional[str] = None,
    ) -> Participant:
        def persist(ledger: ProjectLedger, participant: Participant) -> None:
            self.client.create_participant(
                investment_id,
                investor_id,
                participant.amount,
                participant.agent_commission_rate,
            )

        ledger, _ = self._mutate(
            investment_id,
            "add participant",
            lambda lg: lg.add_participant(investor_id, amount, commission_rate, investor_name=investor_name),
            persist,
        )
        participant = ledger.engine.find_active_for_investor(investor_id)
        if participant is None:
            raise NotFoundError(f"investor {investor_id} missing from project {investment_id} after create")
        return participant

    def raise_participant_capital(
        self,
        investment_id: str,
        participant_id: str,
        additional_amount: Any,
        expected_version: Optional[int] = None,
    ) -> Participant:
        """Persists the participant's new absolute amount."""
        ledger, _ = self._mutate(
            investment_id,
            "raise participant capital",
            lambda lg: lg.raise_participant_capital(participant_id, additional_amount, expected_version),
            lambda lg, p: self.client.update_participant(participant_id, {"amount": p.amount}),
        )
        return ledger.participant(participant_id)

    def update_commission_rate(
        self,
        investment_id: str,
        participant_id: str,
        rate_percent: Any,
        expected_version: Optional[int] = None,
    ) -> Participant:
        ledger, _ = self._mutate(
            investment_id,
            "update commission",
            lambda lg: lg.update_commission_rate(participant_id, rate_percent, expected_version),
            lambda lg, p: self.client.update_participant(
                participant_id, {"agentCommissionRate": p.agent_commission_rate}
            ),
        )
        return ledger.participant(participant_id)

    def set_participant_status(
        self,
        investment_id: str,
        participant_id: str,
        status: EntityStatus | str,
        expected_version: Optional[int] = None,
    ) -> Participant:
        ledger, _ = self._mutate(
            investment_id,
            "set participant status",
            lambda lg: lg.set_participant_status(participant_id, status, expected_version),
            lambda lg, p: self.client.update_participant(participant_id, {"status": p.status}),
        )
        return ledger.participant(participant_id)

    def close_participant(
        self,
        investment_id: str,
        participant_id: str,
        expected_version: Optional[int] = None,
    ) -> Participant:
        ledger, _ = self._mutate(
            investment_id,
            "close project",
            lambda lg: lg.close_participant(participant_id, expected_version),
            lambda lg, p: self.client.update_participant(
                participant_id,
                {"totalDue": p.total_due, "totalPaid": p.total_paid, "status": p.status, "amount": p.amount},
            ),
        )
        return ledger.participant(participant_id)

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    def raise_capital(self, investment_id: str, additional_amount: Any) -> Decimal:
        ledger, _ = self._mutate(
            investment_id,
            "raise capital",
            lambda lg: lg.raise_capital(additional_amount),
            lambda lg, total: self.client.update_investment(
                investment_id, {"projectAmount": total, "isCapitalRaise": True}
            ),
        )
        return ledger.project.project_amount

    def edit_project(self, investment_id: str, **changes: Any) -> ProjectLedger:
        ledger, _ = self._mutate(
            investment_id,
            "edit project",
            lambda lg: lg.edit_project(**changes),
            lambda lg, project: self.client.update_investment(
                investment_id,
                {_PROJECT_FIELDS[name]: getattr(project, name) for name, value in changes.items() if value is not None},
            ),
        )
        return ledger

    def set_project_status(self, investment_id: str, status: EntityStatus | str) -> ProjectLedger:
        ledger, _ = self._mutate(
            investment_id,
            "set project status",
            lambda lg: lg.set_project_status(status),
            lambda lg, project: self.client.update_investment(investment_id, {"status": project.status}),
        )
        return ledger

    def revalue(self, investment_id: str, market_value: Any) -> Decimal:
        ledger, value = self._mutate(
            investment_id,
            "revalue",
            lambda lg: lg.revalue(market_value),
            lambda lg, v: self.client.update_investment(investment_id, {"marketValue": v}),
        )
        return value

    def preview_sale(self, investment_id: str, sale_amount: Any) -> SaleDistribution:
        return self.load(investment_id).preview_sale(sale_amount)

    def declare_sale(self, investment_id: str, sale_amount: Any) -> SaleDistribution:
        """Validate and compute locally, then persist ``saleAmount``; returns the local split."""
        _, distribution = self._mutate(
            investment_id,
            "declare sale",
            lambda lg: lg.declare_sale(sale_amount),
            lambda lg, d: self.client.update_investment(investment_id, {"saleAmount": d.sale_amount}),
        )
        return distribution

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def record_payment(
        self,
        investment_id: str,
        accrual_id: str,
        paid_amount: Any,
        note: str = "",
        expected_version: Optional[int] = None,
    ) -> MonthlyAccrual:
        def persist(ledger: ProjectLedger, accrual: MonthlyAccrual) -> None:
            self.client.record_transaction_payment(accrual_id, accrual.payment_log[-1].paid_amount, note)

        ledger, _ = self._mutate(
            investment_id,
            "record payment",
            lambda lg: lg.record_payment(accrual_id, paid_amount, note=note, expected_version=expected_version),
            persist,
        )
        return ledger.book.get(accrual_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def monthly_statement(self, investment_id: str, investor_id: str, year: int) -> pd.DataFrame:
        rows = self.load(investment_id).monthly_statement(investor_id, year)
        return statements.statement_frame(rows)

    def history(self, investment_id: str, **filters: Any) -> pd.DataFrame:
        return self.load(investment_id).history_frame(**filters)

    def investor_portfolio(self, investor_id: str) -> dict[str, Any]:
        records = self.client.fetch_all("list_participants", investor_id=investor_id)
        return statements.investor_portfolio(Participant.from_dict(r) for r in records)
