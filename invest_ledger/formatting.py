"""
formatting.py — Currency display and transaction labels.

Depends only on: money.py, audit.py
"""
from __future__ import annotations

import re
from decimal import Decimal
from typing import Optional

from babel.numbers import format_currency as _babel_format_currency, is_currency

from invest_ledger.audit import AuditEvent, TransactionType
from invest_ledger.money import Number, to_decimal

PLACEHOLDER = "-"

TRANSACTION_LABELS: dict[TransactionType, str] = {
    TransactionType.INVESTMENT: "Investment",
    TransactionType.INVESTMENT_UPDATED: "Project Update",
    TransactionType.SALE_DECLARED: "Sale Declared",
    TransactionType.GROSS_PROFIT: "Gross Profit",
    TransactionType.ADMIN_COST_DECLARED: "Admin Cost",
    TransactionType.NET_PROFIT: "Net Profit",
    TransactionType.PROFIT_DISTRIBUTED: "Profit Distributed",
    TransactionType.COMMISSION_CALCULATED: "Agent Commission",
    TransactionType.PROFIT_PAYMENT: "Payout",
    TransactionType.CLOSE_PROJECT: "Project Closed",
}


def is_known_currency(code: str) -> bool:
    """True when the code is an ISO 4217 currency Babel knows."""
    return bool(code) and is_currency(code.upper())


def format_currency(
    amount: Optional[Number],
    currency: str = "GBP",
    locale: str = "en_GB",
) -> str:
    """
    Locale-aware money string, e.g. ``£1,234.50``.

    Codes Babel does not recognise render as ``"{code} {amount:,.2f}"``;
    ``None`` renders as a dash placeholder.
    """
    if amount is None:
        return PLACEHOLDER
    value = to_decimal(amount)
    code = (currency or "").upper()
    if is_known_currency(code):
        return _babel_format_currency(value, code, locale=locale)
    return f"{code} {value:,.2f}".strip()


def format_percent(value: Optional[Number], places: int = 2) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{to_decimal(value):.{places}f}%"


def _split_camel(name: str) -> str:
    words = re.sub(r"([A-Z])", r" \1", name).strip()
    return words[:1].upper() + words[1:]


def transaction_label(transaction_type: TransactionType | str | None) -> str:
    """Display label for a transaction type; unknown types are title-cased."""
    if not transaction_type:
        return "Transaction"
    try:
        return TRANSACTION_LABELS[TransactionType(transaction_type)]
    except ValueError:
        return _split_camel(str(transaction_type))


def describe_event(event: AuditEvent) -> str:
    """One-line details text for the transaction history view."""
    if event.transaction_type is TransactionType.PROFIT_PAYMENT:
        return event.message
    if event.transaction_type is TransactionType.INVESTMENT:
        if event.investor_name:
            return f"Investment from {event.investor_name}"
        return "Initial Investment Added"
    return event.message or PLACEHOLDER


def event_amount(event: AuditEvent) -> Decimal:
    """Amount shown for an event in history views (0 when the event carries none)."""
    amount = event.amount
    if amount is None or amount <= 0:
        return Decimal("0")
    return amount
