"""
project.py — Investment project record and its project-level update rules.

Depends only on: errors.py, money.py, audit.py
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from invest_ledger.audit import AuditLog, InvestmentUpdatedEvent
from invest_ledger.errors import ValidationError
from invest_ledger.money import ZERO, quantize_money, to_decimal, validate_percent, validate_positive


class EntityStatus(str, Enum):
    """Soft-disable flag shared by projects and participants."""

    ACTIVE = "active"
    BLOCK = "block"


def _optional_decimal(value: Any, field: str) -> Optional[Decimal]:
    return None if value is None else to_decimal(value, field)


@dataclass
class InvestmentProject:
    """
    An investment opportunity raising capital from several investors.

    ``project_amount`` is the project's capital base: the funding ceiling for
    participants and the cost basis of a sale. ``amount_required`` is kept
    only for records written by older backends that used it as the target.
    """

    id: str
    title: str
    currency: str = "GBP"
    project_amount: Decimal = ZERO
    admin_cost: Decimal = ZERO  # percent of gross profit
    details: str = ""
    amount_required: Optional[Decimal] = None
    project_duration: int = 0  # years
    installment_number: int = 0
    sale_amount: Optional[Decimal] = None
    market_value: Optional[Decimal] = None
    total_amount_paid: Decimal = ZERO
    status: EntityStatus = EntityStatus.ACTIVE

    def __post_init__(self) -> None:
        self.currency = (self.currency or "GBP").upper()
        self.project_amount = quantize_money(to_decimal(self.project_amount, "project_amount"), self.currency)
        if self.project_amount < ZERO:
            raise ValidationError("project_amount cannot be negative", field="project_amount")
        self.admin_cost = validate_percent(self.admin_cost, "admin_cost")
        self.amount_required = _optional_decimal(self.amount_required, "amount_required")
        self.sale_amount = _optional_decimal(self.sale_amount, "sale_amount")
        self.market_value = _optional_decimal(self.market_value, "market_value")
        self.total_amount_paid = to_decimal(self.total_amount_paid, "total_amount_paid")
        self.status = EntityStatus(self.status)
        if self.project_duration < 0 or self.installment_number < 0:
            raise ValidationError("project_duration and installment_number cannot be negative")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status is EntityStatus.ACTIVE

    @property
    def is_sold(self) -> bool:
        return self.sale_amount is not None

    def ensure_active(self) -> None:
        if not self.is_active:
            raise ValidationError(f"project {self.id} is blocked", field="status")

    # ------------------------------------------------------------------
    # Update rules
    # ------------------------------------------------------------------

    def raise_capital(self, additional_amount: Any, log: AuditLog) -> Decimal:
        """
        Project-level capital raise (``isCapitalRaise``).

        Parameters
        ----------
        additional_amount:
            Amount added to the capital base. Must be positive.
        log:
            Audit log receiving an ``investmentUpdated`` entry.

        Returns
        -------
        Decimal
            The new ``project_amount``.
        """
        self.ensure_active()
        if self.is_sold:
            raise ValidationError("cannot raise capital on a sold project", field="sale_amount")
        amount = quantize_money(validate_positive(additional_amount, "raise_amount"), self.currency)
        self.project_amount += amount
        log.append(
            InvestmentUpdatedEvent(
                investment_id=self.id,
                note=f"Capital raised by {amount}; project amount now {self.project_amount}",
                value=amount,
            )
        )
        return self.project_amount

    def edit(
        self,
        log: AuditLog,
        *,
        title: Optional[str] = None,
        details: Optional[str] = None,
        admin_cost: Any = None,
        currency: Optional[str] = None,
        project_duration: Optional[int] = None,
        installment_number: Optional[int] = None,
    ) -> "InvestmentProject":
        """Apply admin edits. Admin cost and currency are frozen once sold."""
        changes: dict[str, Any] = {}
        if title is not None:
            if not title.strip():
                raise ValidationError("title is required", field="title")
            if len(title) > 100:
                raise ValidationError("title must be less than 100 characters", field="title")
            changes["title"] = title
        if details is not None:
            changes["details"] = details
        if admin_cost is not None:
            changes["admin_cost"] = validate_percent(admin_cost, "admin_cost")
        if currency is not None:
            if not currency.strip():
                raise ValidationError("currency is required", field="currency")
            changes["currency"] = currency.strip().upper()
        for name, value in (("project_duration", project_duration), ("installment_number", installment_number)):
            if value is not None:
                if value < 0:
                    raise ValidationError(f"{name} cannot be negative", field=name)
                changes[name] = value

        if self.is_sold and ({"admin_cost", "currency"} & changes.keys()):
            raise ValidationError("admin cost and currency cannot change after a sale")
        if not changes:
            return self

        for name, value in changes.items():
            setattr(self, name, value)
        log.append(
            InvestmentUpdatedEvent(
                investment_id=self.id,
                note="Project updated: " + ", ".join(sorted(changes)),
            )
        )
        return self

    def set_status(self, status: EntityStatus | str, log: AuditLog) -> "InvestmentProject":
        """Soft-disable (``block``) or re-enable a project; projects are never deleted."""
        status = EntityStatus(status)
        if status is self.status:
            return self
        self.status = status
        log.append(InvestmentUpdatedEvent(investment_id=self.id, note=f"Project status set to {status.value}"))
        return self

    def revalue(self, market_value: Any, log: AuditLog) -> Decimal:
        """
        Record a current market value (CMV) without distributing anything.

        May be repeated; it never touches ``sale_amount``.
        """
        value = quantize_money(validate_positive(market_value, "market_value"), self.currency)
        self.market_value = value
        log.append(
            InvestmentUpdatedEvent(
                investment_id=self.id,
                note=f"Current market value declared at {value}",
                value=value,
            )
        )
        return value

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InvestmentProject":
        """Build from the backend's ``/investments/{id}`` payload."""
        project_amount = data.get("projectAmount")
        if project_amount is None:
            project_amount = data.get("amountRequired") or 0
        return cls(
            id=str(data.get("_id") or data.get("id")),
            title=data.get("title") or "",
            details=data.get("details") or "",
            currency=data.get("currencyType") or "GBP",
            project_amount=project_amount,
            amount_required=data.get("amountRequired"),
            admin_cost=data.get("adminCost") or 0,
            project_duration=int(data.get("projectDuration") or 0),
            installment_number=int(data.get("installmentNumber") or 0),
            sale_amount=data.get("saleAmount"),
            market_value=data.get("marketValue"),
            total_amount_paid=data.get("totalAmountPaid") or 0,
            status=data.get("status") or EntityStatus.ACTIVE,
        )

    def __repr__(self) -> str:
        return (
            f"InvestmentProject(id={self.id!r}, title={self.title!r}, "
            f"project_amount={self.currency} {self.project_amount:,.2f}, "
            f"admin_cost={self.admin_cost}%, status={self.status.value})"
        )
