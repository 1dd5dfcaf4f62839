"""
audit.py — Append-only transaction/audit log and its tagged event variants.

Depends only on: errors.py, money.py, periods.py
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, ClassVar, Iterable, Iterator, Optional

from invest_ledger.errors import ValidationError
from invest_ledger.money import to_decimal
from invest_ledger.periods import month_key

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionType(str, Enum):
    """Closed set of monetary event kinds recorded by the backend."""

    INVESTMENT = "investment"
    INVESTMENT_UPDATED = "investmentUpdated"
    SALE_DECLARED = "saleDeclared"
    GROSS_PROFIT = "grossProfit"
    ADMIN_COST_DECLARED = "adminCostDeclared"
    NET_PROFIT = "netProfit"
    PROFIT_DISTRIBUTED = "profitDistributed"
    COMMISSION_CALCULATED = "commissionCalculated"
    PROFIT_PAYMENT = "profitPayment"
    CLOSE_PROJECT = "closeProject"


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True, kw_only=True)
class AuditEvent:
    """
    Fields common to every audit event.

    Subclasses set ``transaction_type`` and add only the fields relevant to
    that kind of event.
    """

    transaction_type: ClassVar[TransactionType]

    investment_id: str
    investor_id: Optional[str] = None
    investor_name: Optional[str] = None
    created_at: Optional[datetime] = None
    event_id: Optional[str] = None
    distribution_id: Optional[str] = None
    month: Optional[str] = None

    @property
    def message(self) -> str:
        return self.transaction_type.value

    @property
    def amount(self) -> Optional[Decimal]:
        return None

    def _metadata(self) -> dict[str, Any]:
        meta: dict[str, Any] = {}
        if self.amount is not None:
            meta["amount"] = float(self.amount)
        if self.investor_name:
            meta["investorName"] = self.investor_name
        return meta

    def to_dict(self) -> dict[str, Any]:
        """Wire shape used by the backend's ``logs[]`` arrays."""
        data: dict[str, Any] = {
            "transactionType": self.transaction_type.value,
            "message": self.message,
            "investmentId": self.investment_id,
            "metadata": self._metadata(),
        }
        if self.event_id:
            data["_id"] = self.event_id
        if self.investor_id:
            data["investorId"] = self.investor_id
        if self.created_at is not None:
            data["createdAt"] = self.created_at.isoformat()
        if self.distribution_id:
            data["distributionId"] = self.distribution_id
        if self.month:
            data["month"] = self.month
        return data


@dataclass(frozen=True, kw_only=True)
class _AmountEvent(AuditEvent):
    value: Decimal

    @property
    def amount(self) -> Decimal:
        return self.value


@dataclass(frozen=True, kw_only=True)
class InvestmentEvent(_AmountEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.INVESTMENT

    @property
    def message(self) -> str:
        return f"Investment of {self.value} by {self.investor_name or self.investor_id}"


@dataclass(frozen=True, kw_only=True)
class InvestmentUpdatedEvent(AuditEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.INVESTMENT_UPDATED

    note: str
    value: Optional[Decimal] = None

    @property
    def amount(self) -> Optional[Decimal]:
        return self.value

    @property
    def message(self) -> str:
        return self.note


@dataclass(frozen=True, kw_only=True)
class SaleDeclaredEvent(_AmountEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.SALE_DECLARED

    @property
    def message(self) -> str:
        return f"Sale declared at {self.value}"


@dataclass(frozen=True, kw_only=True)
class GrossProfitEvent(_AmountEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.GROSS_PROFIT

    @property
    def message(self) -> str:
        return f"Gross Profit {self.value}"


@dataclass(frozen=True, kw_only=True)
class AdminCostDeclaredEvent(_AmountEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.ADMIN_COST_DECLARED

    percent: Decimal

    @property
    def message(self) -> str:
        return f"Admin cost {self.percent}% = {self.value}"

    def _metadata(self) -> dict[str, Any]:
        meta = super()._metadata()
        meta["percent"] = float(self.percent)
        return meta


@dataclass(frozen=True, kw_only=True)
class NetProfitEvent(_AmountEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.NET_PROFIT

    @property
    def message(self) -> str:
        return f"Net Profit Allocated {self.value}"


@dataclass(frozen=True, kw_only=True)
class ProfitDistributedEvent(_AmountEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.PROFIT_DISTRIBUTED

    share: Decimal

    @property
    def message(self) -> str:
        return f"Profit for {self.investor_name or self.investor_id}: {self.value} ({self.share}%)"

    def _metadata(self) -> dict[str, Any]:
        meta = super()._metadata()
        meta["share"] = float(self.share)
        return meta


@dataclass(frozen=True, kw_only=True)
class CommissionCalculatedEvent(_AmountEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.COMMISSION_CALCULATED

    rate: Decimal

    @property
    def message(self) -> str:
        return f"Agent commission {self.rate}% on {self.investor_name or self.investor_id}: {self.value}"

    def _metadata(self) -> dict[str, Any]:
        meta = super()._metadata()
        meta["rate"] = float(self.rate)
        return meta


@dataclass(frozen=True, kw_only=True)
class ProfitPaymentEvent(AuditEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.PROFIT_PAYMENT

    paid_amount: Decimal
    note: str = ""

    @property
    def amount(self) -> Decimal:
        return self.paid_amount

    @property
    def message(self) -> str:
        return self.note or f"Payment of {self.paid_amount}"

    def to_dict(self) -> dict[str, Any]:
        """Wire shape used by the backend's ``paymentLog[]`` arrays."""
        data = super().to_dict()
        data.pop("message")
        data["paidAmount"] = float(self.paid_amount)
        data["note"] = self.note
        return data


@dataclass(frozen=True, kw_only=True)
class CloseProjectEvent(_AmountEvent):
    transaction_type: ClassVar[TransactionType] = TransactionType.CLOSE_PROJECT

    @property
    def message(self) -> str:
        return f"Project closed for {self.investor_name or self.investor_id}; {self.value} moved to paid"


EVENT_TYPES: dict[TransactionType, type[AuditEvent]] = {
    cls.transaction_type: cls
    for cls in (
        InvestmentEvent,
        InvestmentUpdatedEvent,
        SaleDeclaredEvent,
        GrossProfitEvent,
        AdminCostDeclaredEvent,
        NetProfitEvent,
        ProfitDistributedEvent,
        CommissionCalculatedEvent,
        ProfitPaymentEvent,
        CloseProjectEvent,
    )
}


# ---------------------------------------------------------------------------
# Wire parsing
# ---------------------------------------------------------------------------

def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed); naive values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"invalid timestamp {value!r}", field="createdAt")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def ref_id(value: Any) -> Optional[str]:
    """Backend references arrive either as ids or populated ``{_id, name}`` objects."""
    if isinstance(value, dict):
        value = value.get("_id") or value.get("id")
    return str(value) if value not in (None, "") else None


def event_from_dict(
    data: dict[str, Any],
    *,
    investment_id: Optional[str] = None,
    investor_id: Optional[str] = None,
    investor_name: Optional[str] = None,
    month: Optional[str] = None,
) -> AuditEvent:
    """
    Build the matching event variant from a backend ``logs[]``/``paymentLog[]`` entry.

    Keyword arguments supply values the backend stores on the parent
    transaction record rather than on each entry.
    """
    raw_type = data.get("transactionType")
    try:
        tx_type = TransactionType(raw_type)
    except ValueError:
        raise ValidationError(f"unknown transactionType {raw_type!r}", field="transactionType")

    metadata = data.get("metadata") or {}
    raw_amount = metadata.get("amount", data.get("paidAmount"))
    text = data.get("message") or data.get("note") or ""

    common: dict[str, Any] = {
        "investment_id": ref_id(data.get("investmentId")) or investment_id or "",
        "investor_id": ref_id(data.get("investorId")) or investor_id,
        "investor_name": metadata.get("investorName") or data.get("investorName") or investor_name,
        "created_at": parse_timestamp(data.get("createdAt")),
        "event_id": ref_id(data.get("_id") or data.get("id")),
        "distribution_id": data.get("distributionId"),
        "month": data.get("month") or month,
    }
    cls = EVENT_TYPES[tx_type]

    if cls is ProfitPaymentEvent:
        return ProfitPaymentEvent(
            paid_amount=to_decimal(raw_amount, "paidAmount"),
            note=data.get("note") or "",
            **common,
        )
    if cls is InvestmentUpdatedEvent:
        value = to_decimal(raw_amount) if raw_amount is not None else None
        return InvestmentUpdatedEvent(note=text, value=value, **common)

    extra: dict[str, Any] = {}
    if cls is AdminCostDeclaredEvent:
        extra["percent"] = to_decimal(metadata.get("percent", 0), "percent")
    elif cls is ProfitDistributedEvent:
        extra["share"] = to_decimal(metadata.get("share", 0), "share")
    elif cls is CommissionCalculatedEvent:
        extra["rate"] = to_decimal(metadata.get("rate", 0), "rate")
    return cls(value=to_decimal(raw_amount if raw_amount is not None else 0), **extra, **common)


# ---------------------------------------------------------------------------
# Log
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LatestDistribution:
    """The most recent sale distribution of a project."""

    total_net_profit: Decimal
    created_at: datetime
    distribution_id: Optional[str] = None
    payouts: dict[str, Decimal] = field(default_factory=dict)  # by investor_id
    investor_names: dict[str, str] = field(default_factory=dict)

    def payout_by_name(self) -> dict[str, Decimal]:
        """Payouts keyed for display; investors sharing a name are summed."""
        by_name: dict[str, Decimal] = {}
        for investor_id, amount in self.payouts.items():
            name = self.investor_names.get(investor_id, investor_id)
            by_name[name] = by_name.get(name, Decimal("0")) + amount
        return by_name

    @property
    def total_paid_out(self) -> Decimal:
        return sum(self.payouts.values(), Decimal("0"))


def _in_range(ts: datetime, start: date | datetime | None, end: date | datetime | None) -> bool:
    if start is not None:
        if isinstance(start, datetime):
            if ts < parse_timestamp(start):
                return False
        elif ts.date() < start:
            return False
    if end is not None:
        # a plain date is inclusive up to the end of that day
        if isinstance(end, datetime):
            if ts > parse_timestamp(end):
                return False
        elif ts.date() > end:
            return False
    return True


class AuditLog:
    """
    Append-only record of monetary events.

    ``append`` never validates business rules (that belongs to the emitting
    operation) and never alters earlier entries. Thread-safe.

        log = AuditLog()
        log.append(NetProfitEvent(investment_id="p1", value=Decimal("45000")))
        log.latest_distribution("p1")
    """

    def __init__(
        self,
        events: Iterable[AuditEvent] = (),
        clock: Optional[Clock] = None,
        distribution_window_seconds: float = 60.0,
    ) -> None:
        self._clock: Clock = clock or utcnow
        self._window = timedelta(seconds=distribution_window_seconds)
        self._lock = threading.Lock()
        self._events: list[AuditEvent] = []
        for event in events:
            self.append(event)

    def now(self) -> datetime:
        return self._clock()

    @staticmethod
    def new_distribution_id() -> str:
        return uuid.uuid4().hex

    def append(self, event: AuditEvent) -> AuditEvent:
        """Store an event, filling ``event_id``, ``created_at`` and ``month`` when absent."""
        updates: dict[str, Any] = {}
        if event.event_id is None:
            updates["event_id"] = uuid.uuid4().hex
        created_at = event.created_at or self._clock()
        if event.created_at is None:
            updates["created_at"] = created_at
        if event.month is None:
            updates["month"] = month_key(created_at)
        stored = replace(event, **updates) if updates else event
        with self._lock:
            self._events.append(stored)
        return stored

    def extend(self, events: Iterable[AuditEvent]) -> list[AuditEvent]:
        return [self.append(e) for e in events]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[AuditEvent]:
        with self._lock:
            snapshot = list(self._events)
        return iter(snapshot)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        investment_id: Optional[str] = None,
        investor_id: Optional[str] = None,
        investor_name: Optional[str] = None,
        month: Optional[str] = None,
        year: Optional[int] = None,
        types: Optional[Iterable[TransactionType | str]] = None,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        newest_first: bool = True,
    ) -> list[AuditEvent]:
        """
        Filter events.

        Parameters
        ----------
        investment_id, investor_id, investor_name:
            Exact matches when given.
        month:
            ``YYYY-MM`` key.
        year:
            Calendar year of the event's month key.
        types:
            Transaction types to keep.
        start, end:
            Inclusive bounds on ``created_at``; a plain ``date`` as ``end``
            includes that whole day.
        newest_first:
            Sort order; False gives chronological order.
        """
        wanted = {TransactionType(t) for t in types} if types is not None else None
        prefix = f"{year:04d}-" if year is not None else None

        selected = []
        for event in self:
            if investment_id is not None and event.investment_id != investment_id:
                continue
            if investor_id is not None and event.investor_id != investor_id:
                continue
            if investor_name is not None and event.investor_name != investor_name:
                continue
            if month is not None and event.month != month:
                continue
            if prefix is not None and not (event.month or "").startswith(prefix):
                continue
            if wanted is not None and event.transaction_type not in wanted:
                continue
            if not _in_range(event.created_at, start, end):
                continue
            selected.append(event)

        # stable sort keeps append order among equal timestamps
        selected.sort(key=lambda e: e.created_at, reverse=newest_first)
        return selected

    def latest_distribution(self, investment_id: str) -> Optional[LatestDistribution]:
        """
        Reconstruct the most recent sale distribution of a project.

        Finds the newest ``netProfit`` event and collects its
        ``profitDistributed`` events by ``distribution_id``. Events without a
        distribution id (legacy backend data) are grouped by timestamp
        proximity within the configured window instead.
        """
        net_events = self.query(
            investment_id=investment_id,
            types=[TransactionType.NET_PROFIT],
            newest_first=False,
        )
        if not net_events:
            return None
        net = net_events[-1]

        distributed = self.query(
            investment_id=investment_id,
            types=[TransactionType.PROFIT_DISTRIBUTED],
            newest_first=False,
        )
        if net.distribution_id:
            batch = [e for e in distributed if e.distribution_id == net.distribution_id]
        else:
            batch = [
                e
                for e in distributed
                if e.distribution_id is None
                and abs(e.created_at - net.created_at) < self._window
            ]

        payouts: dict[str, Decimal] = {}
        names: dict[str, str] = {}
        for event in batch:
            if event.investor_id is None:
                continue
            payouts[event.investor_id] = payouts.get(event.investor_id, Decimal("0")) + event.amount
            if event.investor_name:
                names[event.investor_id] = event.investor_name

        return LatestDistribution(
            total_net_profit=net.amount,
            created_at=net.created_at,
            distribution_id=net.distribution_id,
            payouts=payouts,
            investor_names=names,
        )
