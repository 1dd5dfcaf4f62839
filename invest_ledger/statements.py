"""
statements.py — Tabular views over participants, accruals and the audit log.

Depends on: money.py, periods.py, audit.py, shares.py, accruals.py, formatting.py
All frame-building functions return new pandas DataFrames.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

import pandas as pd

from invest_ledger.accruals import AccrualBook, AccrualStatus
from invest_ledger.audit import AuditLog, TransactionType
from invest_ledger.formatting import describe_event, event_amount, transaction_label
from invest_ledger.money import ZERO
from invest_ledger.periods import month_label
from invest_ledger.shares import Participant, ShareEngine

PARTICIPANT_COLUMNS = [
    "participant_id",
    "investor_id",
    "investor_name",
    "amount",
    "project_share",
    "agent_commission_rate",
    "total_due",
    "total_paid",
    "status",
]

STATEMENT_COLUMNS = [
    "month",
    "label",
    "profit",
    "monthly_total_due",
    "monthly_total_paid",
    "outstanding",
    "status",
    "n_payments",
]

HISTORY_COLUMNS = [
    "created_at",
    "transaction_id",
    "transaction_type",
    "label",
    "investor_id",
    "investor_name",
    "details",
    "amount",
]


# ---------------------------------------------------------------------------
# Participants
# ---------------------------------------------------------------------------

def participants_frame(engine: ShareEngine, include_blocked: bool = True) -> pd.DataFrame:
    """One row per participant, largest position first."""
    rows = [
        {
            "participant_id": p.id,
            "investor_id": p.investor_id,
            "investor_name": p.display_name,
            "amount": float(p.amount),
            "project_share": float(p.project_share),
            "agent_commission_rate": float(p.agent_commission_rate),
            "total_due": float(p.total_due),
            "total_paid": float(p.total_paid),
            "status": p.status.value,
        }
        for p in engine.participants
        if include_blocked or p.is_active
    ]
    df = pd.DataFrame(rows, columns=PARTICIPANT_COLUMNS)
    return df.sort_values("amount", ascending=False, kind="stable").reset_index(drop=True)


def investor_portfolio(positions: Iterable[Participant]) -> dict[str, Any]:
    """
    Totals across one investor's positions in several projects.

    Parameters
    ----------
    positions:
        The investor's participant records, one per project.

    Returns
    -------
    dict with n_projects, n_active, total_invested, total_due, total_paid.
    """
    positions = list(positions)
    return {
        "n_projects": len({p.investment_id for p in positions}),
        "n_active": sum(1 for p in positions if p.is_active),
        "total_invested": sum((p.amount for p in positions), ZERO),
        "total_due": sum((p.total_due for p in positions), ZERO),
        "total_paid": sum((p.total_paid for p in positions), ZERO),
    }


# ---------------------------------------------------------------------------
# Monthly statement
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StatementRow:
    month: str
    profit: Decimal
    monthly_total_due: Decimal
    monthly_total_paid: Decimal
    status: AccrualStatus
    n_payments: int

    @property
    def outstanding(self) -> Decimal:
        return max(self.monthly_total_due - self.monthly_total_paid, ZERO)

    @property
    def label(self) -> str:
        return month_label(self.month)


def monthly_statement(book: AccrualBook, investor_id: str, year: int) -> list[StatementRow]:
    """
    Month-by-month statement of one investor on the book's project.

    Only months holding an accrual appear (no zero rows), in chronological
    order.
    """
    return [
        StatementRow(
            month=a.month,
            profit=a.profit,
            monthly_total_due=a.monthly_total_due,
            monthly_total_paid=a.monthly_total_paid,
            status=a.status,
            n_payments=len(a.payment_log),
        )
        for a in book.for_investor(investor_id, year=year)
    ]


def statement_frame(rows: Iterable[StatementRow]) -> pd.DataFrame:
    records = []
    for row in rows:
        record = asdict(row)
        record.update(
            label=row.label,
            outstanding=float(row.outstanding),
            status=row.status.value,
            profit=float(row.profit),
            monthly_total_due=float(row.monthly_total_due),
            monthly_total_paid=float(row.monthly_total_paid),
        )
        records.append(record)
    return pd.DataFrame(records, columns=STATEMENT_COLUMNS)


# ---------------------------------------------------------------------------
# Transaction history
# ---------------------------------------------------------------------------

def transaction_history(
    audit_log: AuditLog,
    investment_id: Optional[str] = None,
    investor_id: Optional[str] = None,
    year: Optional[int] = None,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    types: Optional[Iterable[TransactionType | str]] = None,
) -> pd.DataFrame:
    """
    Newest-first history table with display labels and details text.

    ``end`` given as a date includes that entire day.
    """
    events = audit_log.query(
        investment_id=investment_id,
        investor_id=investor_id,
        year=year,
        start=start,
        end=end,
        types=types,
    )
    rows = [
        {
            "created_at": e.created_at,
            "transaction_id": e.event_id,
            "transaction_type": e.transaction_type.value,
            "label": transaction_label(e.transaction_type),
            "investor_id": e.investor_id,
            "investor_name": e.investor_name,
            "details": describe_event(e),
            "amount": float(event_amount(e)),
        }
        for e in events
    ]
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)
