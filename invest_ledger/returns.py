"""
returns.py — Investor return metrics derived from the audit log.

Depends only on: audit.py
Metric functions are pure; float math is fine here because the results are
analytics, never booked amounts.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

import numpy as np
import numpy.typing as npt
import pandas as pd
from scipy import optimize

from invest_ledger.audit import AuditLog, TransactionType

_DAYS_PER_YEAR = 365.0

# Transaction types that move cash between an investor and a project
_OUTFLOW_TYPES = (TransactionType.INVESTMENT, TransactionType.INVESTMENT_UPDATED)
_INFLOW_TYPES = (TransactionType.PROFIT_PAYMENT, TransactionType.CLOSE_PROJECT)


# ---------------------------------------------------------------------------
# Rate of return
# ---------------------------------------------------------------------------

def year_fractions(dates: Sequence[datetime]) -> npt.NDArray[np.float64]:
    """Years elapsed since the earliest date, on an actual/365 basis."""
    if len(dates) == 0:
        return np.zeros(0, dtype=np.float64)
    stamps = pd.to_datetime(pd.Series(list(dates)), utc=True)
    elapsed = (stamps - stamps.min()).dt.total_seconds().to_numpy(dtype=np.float64)
    return elapsed / (_DAYS_PER_YEAR * 86_400.0)


def calc_xirr(
    amounts: npt.ArrayLike,
    dates: Sequence[datetime],
    guess: float = 0.10,
    tol: float = 1e-8,
) -> float:
    """
    Annualised internal rate of return for irregularly dated cash flows.

    Newton-Raphson first, Brent's method over a wide bracket if Newton
    fails to converge to a sensible root.

    Parameters
    ----------
    amounts:
        Negative = paid in by the investor, positive = paid out to them.
    dates:
        Timestamp of each amount.

    Returns
    -------
    float
        Rate as a decimal (0.12 = 12%); nan when the flows never change sign
        or no root exists.
    """
    flows = np.asarray(amounts, dtype=np.float64)
    if len(flows) != len(dates):
        raise ValueError("amounts and dates must have the same length")
    if not (np.any(flows > 0) and np.any(flows < 0)):
        return float("nan")
    t = year_fractions(dates)

    def npv(r: float) -> float:
        return float(np.sum(flows / (1.0 + r) ** t))

    def dnpv(r: float) -> float:
        return float(np.sum(-t * flows / (1.0 + r) ** (t + 1.0)))

    try:
        rate = optimize.newton(npv, x0=guess, fprime=dnpv, tol=tol, maxiter=500)
        if -1.0 < rate < 100.0 and np.isfinite(rate):
            return float(rate)
    except (RuntimeError, ValueError, OverflowError, ZeroDivisionError):
        pass

    lo, hi = -0.999, 100.0
    try:
        if npv(lo) * npv(hi) < 0:
            return float(optimize.brentq(npv, lo, hi, xtol=tol, maxiter=1000))
    except (ValueError, OverflowError):
        pass
    return float("nan")


def calc_profit_multiple(invested: float, returned: float) -> float:
    """Cash returned per unit of capital invested; nan without capital."""
    if invested <= 0:
        return float("nan")
    return returned / invested


# ---------------------------------------------------------------------------
# Audit log extraction
# ---------------------------------------------------------------------------

def participant_cashflows(audit_log: AuditLog, investment_id: str, investor_id: str) -> pd.DataFrame:
    """
    Dated cash flows of one investor on one project, chronological.

    Investments and capital raises are outflows; payouts and the settlement
    on close are inflows. Project-level events (no investor) are ignored.

    Columns: created_at, transaction_type, amount
    """
    events = audit_log.query(
        investment_id=investment_id,
        investor_id=investor_id,
        types=_OUTFLOW_TYPES + _INFLOW_TYPES,
        newest_first=False,
    )
    rows = []
    for event in events:
        if event.amount is None or event.amount == 0:
            continue
        sign = -1.0 if event.transaction_type in _OUTFLOW_TYPES else 1.0
        rows.append(
            {
                "created_at": event.created_at,
                "transaction_type": event.transaction_type.value,
                "amount": sign * float(event.amount),
            }
        )
    return pd.DataFrame(rows, columns=["created_at", "transaction_type", "amount"])


def participant_returns(
    audit_log: AuditLog,
    investment_id: str,
    investor_id: str,
    capital_returned_at: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Summary return metrics for one investor on one project.

    Parameters
    ----------
    capital_returned_at:
        When given, the invested capital is treated as repaid at this date,
        which is how a sold project is usually analysed.

    Returns
    -------
    dict with invested, returned, profit_multiple, xirr.
    """
    flows = participant_cashflows(audit_log, investment_id, investor_id)
    invested = float(-flows.loc[flows["amount"] < 0, "amount"].sum())
    returned = float(flows.loc[flows["amount"] > 0, "amount"].sum())

    amounts = flows["amount"].tolist()
    dates = flows["created_at"].tolist()
    if capital_returned_at is not None and invested > 0:
        amounts.append(invested)
        dates.append(capital_returned_at)

    return {
        "invested": invested,
        "returned": returned,
        "profit_multiple": calc_profit_multiple(invested, returned),
        "xirr": calc_xirr(amounts, dates) if amounts else float("nan"),
    }
