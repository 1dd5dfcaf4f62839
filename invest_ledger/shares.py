"""
shares.py — Participant positions and proportional-share bookkeeping.

Depends only on: errors.py, money.py, audit.py, project.py
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional

from invest_ledger.audit import AuditLog, InvestmentEvent, InvestmentUpdatedEvent, ref_id
from invest_ledger.errors import ConflictError, DuplicateParticipantError, NotFoundError, ValidationError
from invest_ledger.money import (
    ZERO,
    compute_share,
    quantize_money,
    share_fraction,
    to_decimal,
    validate_percent,
    validate_positive,
)
from invest_ledger.project import EntityStatus, InvestmentProject

log = logging.getLogger(__name__)


@dataclass
class Participant:
    """An investor's position in one project."""

    id: str
    investor_id: str
    investment_id: str
    amount: Decimal
    agent_commission_rate: Decimal = ZERO
    investor_name: Optional[str] = None
    project_share: Decimal = ZERO  # percent, 2 dp, derived
    total_due: Decimal = ZERO
    total_paid: Decimal = ZERO
    installment_number: int = 0
    installment_paid_amount: Decimal = ZERO
    status: EntityStatus = EntityStatus.ACTIVE
    version: int = 0

    def __post_init__(self) -> None:
        self.amount = to_decimal(self.amount, "amount")
        if self.amount < ZERO:
            raise ValidationError("participant amount cannot be negative", field="amount")
        self.agent_commission_rate = validate_percent(self.agent_commission_rate, "agent_commission_rate")
        self.project_share = to_decimal(self.project_share, "project_share")
        self.total_due = to_decimal(self.total_due, "total_due")
        self.total_paid = to_decimal(self.total_paid, "total_paid")
        self.installment_paid_amount = to_decimal(self.installment_paid_amount, "installment_paid_amount")
        self.status = EntityStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status is EntityStatus.ACTIVE

    @property
    def display_name(self) -> str:
        return self.investor_name or self.investor_id

    def ensure_active(self) -> None:
        if not self.is_active:
            raise ValidationError(f"participant {self.display_name} is closed", field="status")

    def check_version(self, expected_version: Optional[int]) -> None:
        """Optimistic concurrency check; None skips it."""
        if expected_version is not None and expected_version != self.version:
            raise ConflictError(
                f"participant {self.id} changed (version {self.version}, expected {expected_version}); refetch and retry"
            )

    def touch(self) -> None:
        self.version += 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Participant":
        """Build from an ``/investment-participants`` record (investorId may be populated)."""
        investor = data.get("investorId")
        name = investor.get("name") if isinstance(investor, dict) else data.get("investorName")
        return cls(
            id=str(data.get("_id") or data.get("id")),
            investor_id=ref_id(investor) or "",
            investment_id=ref_id(data.get("investmentId")) or "",
            investor_name=name,
            amount=data.get("amount") or 0,
            agent_commission_rate=data.get("agentCommissionRate") or 0,
            project_share=data.get("projectShare") or 0,
            total_due=data.get("totalDue") or 0,
            total_paid=data.get("totalPaid") or 0,
            installment_number=int(data.get("installmentNumber") or 0),
            installment_paid_amount=data.get("installmentPaidAmount") or 0,
            status=data.get("status") or EntityStatus.ACTIVE,
            version=int(data.get("__v") or data.get("version") or 0),
        )


class ShareEngine:
    """
    Keeps every participant's ``project_share`` consistent with contributed capital.

    Shares are taken against the total committed capital of the project's
    active participants, so any change to one position (add, raise, close,
    status toggle) recomputes every active share. ``project.project_amount``
    is the funding ceiling no active total may exceed.

        engine = ShareEngine(project, audit_log)
        a = engine.add_participant("inv-a", 60_000, commission_rate=2)
        b = engine.add_participant("inv-b", 40_000)
        a.project_share  # Decimal('60.00')
    """

    def __init__(
        self,
        project: InvestmentProject,
        audit_log: AuditLog,
        participants: Iterable[Participant] = (),
    ) -> None:
        self.project = project
        self.audit_log = audit_log
        self._participants: list[Participant] = list(participants)
        self.recompute_shares()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def participants(self) -> list[Participant]:
        return list(self._participants)

    def active(self) -> list[Participant]:
        return [p for p in self._participants if p.is_active]

    def get(self, participant_id: str) -> Participant:
        for participant in self._participants:
            if participant.id == participant_id:
                return participant
        raise NotFoundError(f"participant {participant_id} not found in project {self.project.id}")

    def find_active_for_investor(self, investor_id: str) -> Optional[Participant]:
        for participant in self._participants:
            if participant.investor_id == investor_id and participant.is_active:
                return participant
        return None

    def total_committed(self) -> Decimal:
        """Capital contributed by active participants; the share denominator."""
        return sum((p.amount for p in self.active()), ZERO)

    def remaining_capacity(self) -> Decimal:
        return self.project.project_amount - self.total_committed()

    def share_fractions(self) -> dict[str, Decimal]:
        """Unrounded ownership fraction per active participant id."""
        base = self.total_committed()
        if base <= ZERO:
            return {}
        return {p.id: share_fraction(p.amount, base) for p in self.active()}

    # ------------------------------------------------------------------
    # Share maintenance
    # ------------------------------------------------------------------

    def recompute_shares(self) -> None:
        """O(n) fan-out: refresh ``project_share`` of every participant."""
        base = self.total_committed()
        for participant in self._participants:
            if participant.is_active and base > ZERO:
                participant.project_share = compute_share(participant.amount, base)
            else:
                participant.project_share = ZERO

    def _check_ceiling(self, extra: Decimal) -> None:
        total = self.total_committed() + extra
        if total > self.project.project_amount:
            raise ValidationError(
                f"total participant capital {total} would exceed project amount "
                f"{self.project.project_amount} (remaining {self.remaining_capacity()})",
                field="amount",
            )

    def _ensure_open(self) -> None:
        self.project.ensure_active()
        if self.project.is_sold:
            raise ValidationError("participant capital is frozen once the project is sold", field="sale_amount")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_participant(
        self,
        investor_id: str,
        amount: Any,
        commission_rate: Any = 0,
        investor_name: Optional[str] = None,
        participant_id: Optional[str] = None,
    ) -> Participant:
        """
        Add an investor to the project.

        Parameters
        ----------
        investor_id:
            Investor to add; required.
        amount:
            Capital contributed; must be positive and fit under the ceiling.
        commission_rate:
            Agent commission percentage in [0, 100].
        investor_name:
            Display name carried on audit entries.
        participant_id:
            Backend id when known; a random id otherwise.

        Returns
        -------
        Participant
        """
        if not investor_id:
            raise ValidationError("an investor must be selected", field="investor_id")
        self._ensure_open()
        value = quantize_money(validate_positive(amount, "amount"), self.project.currency)
        rate = validate_percent(commission_rate, "agent_commission_rate")
        if self.find_active_for_investor(investor_id) is not None:
            raise DuplicateParticipantError(
                f"investor {investor_id} already participates in project {self.project.id}",
                field="investor_id",
            )
        self._check_ceiling(value)

        participant = Participant(
            id=participant_id or uuid.uuid4().hex,
            investor_id=investor_id,
            investment_id=self.project.id,
            investor_name=investor_name,
            amount=value,
            agent_commission_rate=rate,
            installment_number=self.project.installment_number,
        )
        self._participants.append(participant)
        self.recompute_shares()
        self.audit_log.append(
            InvestmentEvent(
                investment_id=self.project.id,
                investor_id=investor_id,
                investor_name=investor_name,
                value=value,
            )
        )
        log.info("Added investor %s to project %s with %s", investor_id, self.project.id, value)
        return participant

    def raise_participant_capital(
        self,
        participant_id: str,
        additional_amount: Any,
        expected_version: Optional[int] = None,
    ) -> Participant:
        """Increase one participant's capital and re-derive every active share."""
        self._ensure_open()
        participant = self.get(participant_id)
        participant.ensure_active()
        participant.check_version(expected_version)
        value = quantize_money(validate_positive(additional_amount, "amount"), self.project.currency)
        self._check_ceiling(value)

        participant.amount += value
        participant.touch()
        self.recompute_shares()
        self.audit_log.append(
            InvestmentUpdatedEvent(
                investment_id=self.project.id,
                investor_id=participant.investor_id,
                investor_name=participant.investor_name,
                note=f"Capital raised for {participant.display_name} by {value}; now {participant.amount}",
                value=value,
            )
        )
        return participant

    def update_commission_rate(
        self,
        participant_id: str,
        rate_percent: Any,
        expected_version: Optional[int] = None,
    ) -> Participant:
        """Change the agent commission rate; shares are unaffected."""
        participant = self.get(participant_id)
        participant.check_version(expected_version)
        rate = validate_percent(rate_percent, "agent_commission_rate")
        previous = participant.agent_commission_rate
        participant.agent_commission_rate = rate
        participant.touch()
        self.audit_log.append(
            InvestmentUpdatedEvent(
                investment_id=self.project.id,
                investor_id=participant.investor_id,
                investor_name=participant.investor_name,
                note=f"Agent commission for {participant.display_name} changed from {previous}% to {rate}%",
            )
        )
        return participant

    def set_status(
        self,
        participant_id: str,
        status: EntityStatus | str,
        expected_version: Optional[int] = None,
    ) -> Participant:
        """Toggle a participant between active and block; shares follow."""
        participant = self.get(participant_id)
        participant.check_version(expected_version)
        status = EntityStatus(status)
        if status is participant.status:
            return participant
        if status is EntityStatus.ACTIVE:
            self._ensure_open()
            if self.find_active_for_investor(participant.investor_id) is not None:
                raise DuplicateParticipantError(
                    f"investor {participant.investor_id} already has an active position",
                    field="investor_id",
                )
            self._check_ceiling(participant.amount)
        participant.status = status
        participant.touch()
        self.recompute_shares()
        self.audit_log.append(
            InvestmentUpdatedEvent(
                investment_id=self.project.id,
                investor_id=participant.investor_id,
                investor_name=participant.investor_name,
                note=f"Participant {participant.display_name} set to {status.value}",
            )
        )
        return participant

    def __len__(self) -> int:
        return len(self._participants)

    def __repr__(self) -> str:
        return (
            f"ShareEngine(project={self.project.id!r}, n_active={len(self.active())}, "
            f"committed={self.total_committed():,.2f})"
        )
