"""
accruals.py — Monthly profit accruals, payments against them, and project closure.

Depends only on: errors.py, money.py, periods.py, audit.py, project.py, shares.py
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

from invest_ledger.audit import (
    AuditEvent,
    AuditLog,
    CloseProjectEvent,
    ProfitDistributedEvent,
    ProfitPaymentEvent,
    TransactionType,
    event_from_dict,
    ref_id,
)
from invest_ledger.errors import NotFoundError, StatusTransitionError, ValidationError
from invest_ledger.money import ZERO, quantize_money, to_decimal, validate_positive
from invest_ledger.periods import month_key, parse_month_key, sort_month_keys
from invest_ledger.project import EntityStatus, InvestmentProject
from invest_ledger.shares import Participant

log = logging.getLogger(__name__)


class AccrualStatus(str, Enum):
    DUE = "due"
    PARTIAL = "partial"
    PAID = "paid"


_STATUS_RANK = {AccrualStatus.DUE: 0, AccrualStatus.PARTIAL: 1, AccrualStatus.PAID: 2}


def derive_status(monthly_total_due: Decimal, monthly_total_paid: Decimal) -> AccrualStatus:
    """
    paid    iff paid >= due
    partial iff 0 < paid < due
    due     otherwise
    """
    if monthly_total_paid >= monthly_total_due:
        return AccrualStatus.PAID
    if monthly_total_paid > ZERO:
        return AccrualStatus.PARTIAL
    return AccrualStatus.DUE


@dataclass
class MonthlyAccrual:
    """One calendar month of profit/due/paid bookkeeping for an investor on a project."""

    id: str
    investment_id: str
    investor_id: str
    month: str
    participant_id: Optional[str] = None
    profit: Decimal = ZERO
    monthly_total_due: Decimal = ZERO
    monthly_total_paid: Decimal = ZERO
    status: AccrualStatus = AccrualStatus.DUE
    payment_log: tuple[ProfitPaymentEvent, ...] = ()
    logs: tuple[AuditEvent, ...] = ()

    def __post_init__(self) -> None:
        parse_month_key(self.month)
        self.profit = to_decimal(self.profit, "profit")
        self.monthly_total_due = to_decimal(self.monthly_total_due, "monthlyTotalDue")
        self.monthly_total_paid = to_decimal(self.monthly_total_paid, "monthlyTotalPaid")
        self.status = AccrualStatus(self.status)

    @property
    def outstanding(self) -> Decimal:
        return max(self.monthly_total_due - self.monthly_total_paid, ZERO)

    @property
    def is_paid(self) -> bool:
        return self.status is AccrualStatus.PAID

    @property
    def year(self) -> int:
        return parse_month_key(self.month)[0]

    def _advance(self) -> AccrualStatus:
        new_status = derive_status(self.monthly_total_due, self.monthly_total_paid)
        if _STATUS_RANK[new_status] < _STATUS_RANK[self.status]:
            raise StatusTransitionError(
                f"accrual {self.month} cannot move from {self.status.value} back to {new_status.value}"
            )
        self.status = new_status
        return new_status

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonthlyAccrual":
        """Build from a ``/transactions`` record with its ``paymentLog[]`` and ``logs[]``."""
        investment_id = ref_id(data.get("investmentId")) or ""
        investor = data.get("investorId")
        investor_id = ref_id(investor) or ""
        investor_name = investor.get("name") if isinstance(investor, dict) else None
        month = data.get("month")
        context = dict(
            investment_id=investment_id,
            investor_id=investor_id,
            investor_name=investor_name,
            month=month,
        )
        payments = tuple(
            event_from_dict({**entry, "transactionType": TransactionType.PROFIT_PAYMENT.value}, **context)
            for entry in data.get("paymentLog") or []
        )
        logs = tuple(event_from_dict(entry, **context) for entry in data.get("logs") or [])
        return cls(
            id=str(data.get("_id") or data.get("id")),
            investment_id=investment_id,
            investor_id=investor_id,
            participant_id=ref_id(data.get("participantId")),
            month=month,
            profit=data.get("profit") or 0,
            monthly_total_due=data.get("monthlyTotalDue") or 0,
            monthly_total_paid=data.get("monthlyTotalPaid") or 0,
            status=data.get("status") or derive_status(
                to_decimal(data.get("monthlyTotalDue") or 0), to_decimal(data.get("monthlyTotalPaid") or 0)
            ),
            payment_log=payments,
            logs=logs,
        )


class AccrualBook:
    """
    Monthly accruals of one project, keyed by (investor, month).

    State machine per accrual: due -> partial -> paid, forward only.
    Payments are append-only and only ever increase ``monthly_total_paid``.
    """

    def __init__(
        self,
        project: InvestmentProject,
        audit_log: AuditLog,
        accruals: Iterable[MonthlyAccrual] = (),
    ) -> None:
        self.project = project
        self.audit_log = audit_log
        self._accruals: list[MonthlyAccrual] = list(accruals)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def accruals(self) -> list[MonthlyAccrual]:
        return sorted(self._accruals, key=lambda a: parse_month_key(a.month))

    def get(self, accrual_id: str) -> MonthlyAccrual:
        for accrual in self._accruals:
            if accrual.id == accrual_id:
                return accrual
        raise NotFoundError(f"accrual {accrual_id} not found in project {self.project.id}")

    def find(self, investor_id: str, month: str) -> Optional[MonthlyAccrual]:
        for accrual in self._accruals:
            if accrual.investor_id == investor_id and accrual.month == month:
                return accrual
        return None

    def for_investor(self, investor_id: str, year: Optional[int] = None) -> list[MonthlyAccrual]:
        """Accruals of one investor in chronological order, optionally for one year."""
        rows = [
            a for a in self._accruals
            if a.investor_id == investor_id and (year is None or a.year == year)
        ]
        by_month = {a.month: a for a in rows}
        return [by_month[m] for m in sort_month_keys(by_month)]

    def total_outstanding(self, investor_id: Optional[str] = None) -> Decimal:
        return sum(
            (a.outstanding for a in self._accruals if investor_id is None or a.investor_id == investor_id),
            ZERO,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def check_accruable(self, participant: Participant, month: str) -> Optional[MonthlyAccrual]:
        """
        Raise unless ``participant`` can be accrued into ``month``.

        Returns the open accrual that would be topped up, or None when a new
        one would be created. Changes nothing.
        """
        self.project.ensure_active()
        participant.ensure_active()
        if participant.investment_id != self.project.id:
            raise ValidationError(f"participant {participant.id} belongs to another project")
        parse_month_key(month)
        accrual = self.find(participant.investor_id, month)
        if accrual is not None and accrual.is_paid:
            raise ValidationError(f"accrual for {month} is already paid; accrue into a later month", field="month")
        return accrual

    def accrue(
        self,
        participant: Participant,
        profit: Any,
        month: Optional[str] = None,
        distribution_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> MonthlyAccrual:
        """
        Accrue profit owed to a participant for a month.

        Creates the accrual (status ``due``) or tops up an open one, raises
        ``monthly_total_due`` and the participant's ``total_due`` by the same
        amount, and records a ``profitDistributed`` event on both the audit
        log and the accrual.

        Parameters
        ----------
        participant:
            Active participant of this project.
        profit:
            Positive amount owed.
        month:
            ``YYYY-MM``; defaults to the audit log's current month.
        distribution_id:
            Batch id when called from a sale declaration.
        created_at:
            Event timestamp; defaults to the audit log clock.
        """
        amount = quantize_money(validate_positive(profit, "profit"), self.project.currency)
        month = month or month_key(self.audit_log.now())
        accrual = self.check_accruable(participant, month)
        if accrual is None:
            accrual = MonthlyAccrual(
                id=uuid.uuid4().hex,
                investment_id=self.project.id,
                investor_id=participant.investor_id,
                participant_id=participant.id,
                month=month,
            )
            self._accruals.append(accrual)

        event = self.audit_log.append(
            ProfitDistributedEvent(
                investment_id=self.project.id,
                investor_id=participant.investor_id,
                investor_name=participant.investor_name,
                distribution_id=distribution_id,
                created_at=created_at,
                month=month,
                value=amount,
                share=participant.project_share,
            )
        )
        accrual.profit += amount
        accrual.monthly_total_due += amount
        accrual.logs = accrual.logs + (event,)
        accrual._advance()
        participant.total_due += amount
        participant.touch()
        return accrual

    def record_payment(
        self,
        accrual_id: str,
        paid_amount: Any,
        participant: Participant,
        note: str = "",
    ) -> MonthlyAccrual:
        """
        Record a payment to the investor against one month.

        Parameters
        ----------
        accrual_id:
            Accrual being paid.
        paid_amount:
            Positive amount paid out.
        participant:
            The accrual's owner; its ``total_paid`` rises and ``total_due``
            falls (floored at 0) by the same amount.
        note:
            Free-text note stored on the payment log entry.

        Returns
        -------
        MonthlyAccrual
            The updated accrual.
        """
        accrual = self.get(accrual_id)
        amount = quantize_money(validate_positive(paid_amount, "paid_amount"), self.project.currency)
        if accrual.is_paid:
            raise ValidationError(f"accrual for {accrual.month} is already paid", field="status")
        if participant.investor_id != accrual.investor_id or participant.investment_id != self.project.id:
            raise ValidationError(f"participant {participant.id} does not own accrual {accrual.id}")
        self.project.ensure_active()
        participant.ensure_active()

        event = self.audit_log.append(
            ProfitPaymentEvent(
                investment_id=self.project.id,
                investor_id=participant.investor_id,
                investor_name=participant.investor_name,
                month=accrual.month,
                paid_amount=amount,
                note=note,
            )
        )
        accrual.payment_log = accrual.payment_log + (event,)
        accrual.monthly_total_paid += amount
        accrual._advance()

        participant.total_paid += amount
        participant.total_due = max(participant.total_due - amount, ZERO)
        participant.touch()
        self.project.total_amount_paid += amount
        log.info(
            "Payment of %s recorded for %s in %s; status %s",
            amount, participant.display_name, accrual.month, accrual.status.value,
        )
        return accrual

    def close_project(self, participant: Participant) -> Participant:
        """
        Close a participant's position for good.

        Moves the whole outstanding ``total_due`` into ``total_paid``, zeroes
        ``amount`` and blocks the participant. Every open accrual of the
        participant is settled forward to ``paid`` so the book agrees with
        the participant totals. There is no reopen.
        """
        participant.ensure_active()
        self.project.ensure_active()
        open_accruals = [a for a in self.for_investor(participant.investor_id) if not a.is_paid]
        for accrual in open_accruals:
            accrual.monthly_total_paid = accrual.monthly_total_due
            accrual._advance()
        transferred = participant.total_due
        participant.total_paid += transferred
        participant.total_due = ZERO
        participant.amount = ZERO
        participant.status = EntityStatus.BLOCK
        participant.project_share = ZERO
        participant.touch()
        self.audit_log.append(
            CloseProjectEvent(
                investment_id=self.project.id,
                investor_id=participant.investor_id,
                investor_name=participant.investor_name,
                value=transferred,
            )
        )
        log.info(
            "Closed %s on project %s; %s moved to paid, %d open months settled",
            participant.display_name, self.project.id, transferred, len(open_accruals),
        )
        return participant
