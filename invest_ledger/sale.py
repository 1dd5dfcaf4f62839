"""
sale.py — Sale / CMV profit split between the platform and the investors.

Depends on: errors.py, money.py, periods.py, audit.py, project.py, shares.py, accruals.py
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Iterable, Optional

import pandas as pd

from invest_ledger.accruals import AccrualBook
from invest_ledger.audit import (
    AdminCostDeclaredEvent,
    AuditEvent,
    AuditLog,
    CommissionCalculatedEvent,
    GrossProfitEvent,
    NetProfitEvent,
    ProfitDistributedEvent,
    SaleDeclaredEvent,
)
from invest_ledger.errors import ValidationError
from invest_ledger.money import (
    ZERO,
    admin_fee,
    allocate_pro_rata,
    commission_amount,
    gross_profit,
    net_distributable,
    quantize_money,
    validate_percent,
    validate_positive,
)
from invest_ledger.periods import month_key
from invest_ledger.project import InvestmentProject
from invest_ledger.shares import Participant, ShareEngine

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Payout:
    """One participant's slice of the net distributable profit."""

    participant_id: str
    investor_id: str
    investor_name: Optional[str]
    share: Decimal  # percent at time of sale, 2 dp
    amount: Decimal
    commission_rate: Decimal = ZERO
    commission: Decimal = ZERO


@dataclass(frozen=True)
class SaleDistribution:
    """
    Result of splitting a sale.

    Invariants:
        admin_fee + net_distributable == gross_profit   (exact)
        sum(p.amount for p in payouts) == net_distributable
    """

    sale_amount: Decimal
    project_amount: Decimal
    admin_cost_percent: Decimal
    gross_profit: Decimal
    admin_fee: Decimal
    net_distributable: Decimal
    currency: str
    payouts: tuple[Payout, ...] = ()
    distribution_id: Optional[str] = None
    events: tuple[AuditEvent, ...] = ()

    @property
    def is_loss(self) -> bool:
        return self.gross_profit < ZERO

    @property
    def total_paid_out(self) -> Decimal:
        return sum((p.amount for p in self.payouts), ZERO)

    @property
    def total_commission(self) -> Decimal:
        return sum((p.commission for p in self.payouts), ZERO)

    def payout_for(self, investor_id: str) -> Payout:
        for payout in self.payouts:
            if payout.investor_id == investor_id:
                return payout
        raise KeyError(investor_id)

    def to_frame(self) -> pd.DataFrame:
        """
        Per-investor payout table.

        Columns: investor_id, investor_name, share, payout, commission_rate, commission
        """
        return pd.DataFrame(
            [
                {
                    "investor_id": p.investor_id,
                    "investor_name": p.investor_name,
                    "share": float(p.share),
                    "payout": float(p.amount),
                    "commission_rate": float(p.commission_rate),
                    "commission": float(p.commission),
                }
                for p in self.payouts
            ],
            columns=["investor_id", "investor_name", "share", "payout", "commission_rate", "commission"],
        )

    def summary(self) -> dict[str, Any]:
        return {
            "sale_amount": self.sale_amount,
            "project_amount": self.project_amount,
            "gross_profit": self.gross_profit,
            "admin_fee": self.admin_fee,
            "net_distributable": self.net_distributable,
            "total_commission": self.total_commission,
            "n_investors": len(self.payouts),
            "is_loss": self.is_loss,
        }


# ---------------------------------------------------------------------------
# Pure calculation
# ---------------------------------------------------------------------------

def compute_sale_distribution(
    sale_amount: Any,
    project_amount: Any,
    admin_cost_percent: Any,
    participants: Iterable[Participant],
    currency: str = "GBP",
) -> SaleDistribution:
    """
    Split a sale between the platform and the active participants.

    gross  = sale_amount - project_amount           (negative = loss)
    fee    = gross * admin_cost / 100 if gross > 0 else 0
    net    = gross - fee
    payout = net * amount_i / sum(amount)            (drift to largest share)

    Parameters
    ----------
    sale_amount:
        Declared sale price; must be positive.
    project_amount:
        Cost basis (the project's capital base).
    admin_cost_percent:
        Platform percentage of a positive gross profit.
    participants:
        Project participants; only active ones share in the result.
    currency:
        Governs minor-unit rounding.

    Returns
    -------
    SaleDistribution
    """
    sale = quantize_money(validate_positive(sale_amount, "sale_amount"), currency)
    basis = quantize_money(project_amount, currency)
    pct = validate_percent(admin_cost_percent, "admin_cost")

    gross = gross_profit(sale, basis, currency)
    fee = admin_fee(gross, pct, currency)
    net = net_distributable(gross, fee)

    active = [p for p in participants if p.is_active and p.amount > ZERO]
    if not active:
        raise ValidationError("a sale needs at least one active participant to distribute to")

    amounts = allocate_pro_rata(net, [p.amount for p in active], currency)
    payouts = tuple(
        Payout(
            participant_id=p.id,
            investor_id=p.investor_id,
            investor_name=p.investor_name,
            share=p.project_share,
            amount=amount,
            commission_rate=p.agent_commission_rate,
            commission=commission_amount(amount, p.agent_commission_rate, currency),
        )
        for p, amount in zip(active, amounts)
    )
    return SaleDistribution(
        sale_amount=sale,
        project_amount=basis,
        admin_cost_percent=pct,
        gross_profit=gross,
        admin_fee=fee,
        net_distributable=net,
        currency=currency,
        payouts=payouts,
    )


def preview_sale(project: InvestmentProject, engine: ShareEngine, sale_amount: Any) -> SaleDistribution:
    """What a sale at ``sale_amount`` would produce; mutates nothing."""
    return compute_sale_distribution(
        sale_amount,
        project.project_amount,
        project.admin_cost,
        engine.active(),
        project.currency,
    )


# ---------------------------------------------------------------------------
# Declaration
# ---------------------------------------------------------------------------

def declare_sale(
    project: InvestmentProject,
    engine: ShareEngine,
    book: AccrualBook,
    audit_log: AuditLog,
    sale_amount: Any,
) -> SaleDistribution:
    """
    Declare the project's one terminal sale and distribute the result.

    Emits, under one fresh ``distribution_id`` and one timestamp:
    saleDeclared, grossProfit, adminCostDeclared, netProfit, one
    profitDistributed per active participant, then commissionCalculated for
    every positive commission. Positive payouts are accrued into the sale
    month so they can be paid out with ``AccrualBook.record_payment``.

    Callers must hold the project's lock for the whole call.
    """
    project.ensure_active()
    if project.is_sold:
        raise ValidationError(
            f"a sale of {project.sale_amount} was already declared for project {project.id}; "
            "use revalue for a current market value",
            field="sale_amount",
        )
    distribution = preview_sale(project, engine, sale_amount)
    now = audit_log.now()
    month = month_key(now)

    # every check runs before the first event is appended
    participants = {p.participant_id: engine.get(p.participant_id) for p in distribution.payouts}
    for payout in distribution.payouts:
        if payout.amount > ZERO:
            book.check_accruable(participants[payout.participant_id], month)

    distribution_id = audit_log.new_distribution_id()
    stamp = dict(investment_id=project.id, distribution_id=distribution_id, created_at=now, month=month)

    events: list[AuditEvent] = [
        audit_log.append(SaleDeclaredEvent(value=distribution.sale_amount, **stamp)),
        audit_log.append(GrossProfitEvent(value=distribution.gross_profit, **stamp)),
        audit_log.append(
            AdminCostDeclaredEvent(value=distribution.admin_fee, percent=distribution.admin_cost_percent, **stamp)
        ),
        audit_log.append(NetProfitEvent(value=distribution.net_distributable, **stamp)),
    ]
    project.sale_amount = distribution.sale_amount

    for payout in distribution.payouts:
        participant = participants[payout.participant_id]
        if payout.amount > ZERO:
            accrual = book.accrue(
                participant,
                payout.amount,
                month=stamp["month"],
                distribution_id=distribution_id,
                created_at=now,
            )
            events.append(accrual.logs[-1])
        else:
            events.append(
                audit_log.append(
                    ProfitDistributedEvent(
                        investor_id=payout.investor_id,
                        investor_name=payout.investor_name,
                        value=payout.amount,
                        share=payout.share,
                        **stamp,
                    )
                )
            )

    for payout in distribution.payouts:
        if payout.commission > ZERO:
            events.append(
                audit_log.append(
                    CommissionCalculatedEvent(
                        investor_id=payout.investor_id,
                        investor_name=payout.investor_name,
                        value=payout.commission,
                        rate=payout.commission_rate,
                        **stamp,
                    )
                )
            )

    log.info(
        "Sale declared for project %s at %s: gross %s, fee %s, net %s across %d investors",
        project.id,
        distribution.sale_amount,
        distribution.gross_profit,
        distribution.admin_fee,
        distribution.net_distributable,
        len(distribution.payouts),
    )
    return replace(distribution, distribution_id=distribution_id, events=tuple(events))
