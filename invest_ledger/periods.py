"""
periods.py — Calendar-month keys used by accruals, statements and the audit log.

Depends only on: errors.py
"""
from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Iterable, Optional

from invest_ledger.errors import ValidationError

MONTH_NAMES: tuple[str, ...] = tuple(calendar.month_name[1:])


def month_key(when: date | datetime | None = None, *, year: Optional[int] = None, month: Optional[int] = None) -> str:
    """
    Canonical ``YYYY-MM`` key.

    Either pass a date/datetime, or ``year`` and ``month`` explicitly.
    """
    if when is not None:
        year, month = when.year, when.month
    if year is None or month is None:
        raise ValidationError("month_key needs a date or both year and month", field="month")
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be in 1..12, got {month}", field="month")
    return f"{year:04d}-{month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """Split ``YYYY-MM`` into (year, month); raises ValidationError when malformed."""
    try:
        year_s, month_s = key.split("-")
        year, month = int(year_s), int(month_s)
    except (AttributeError, ValueError):
        raise ValidationError(f"invalid month key {key!r}, expected YYYY-MM", field="month") from None
    if len(year_s) != 4 or len(month_s) != 2 or not 1 <= month <= 12:
        raise ValidationError(f"invalid month key {key!r}, expected YYYY-MM", field="month")
    return year, month


def sort_month_keys(keys: Iterable[str], reverse: bool = False) -> list[str]:
    """Chronological order (validated, not just lexical)."""
    return sorted(keys, key=parse_month_key, reverse=reverse)


def months_in_year(year: int) -> list[str]:
    return [month_key(year=year, month=m) for m in range(1, 13)]


def display_month_order(today: date | datetime) -> list[int]:
    """
    Month numbers ordered for display: current month first, wrapping to January.

    Display only; never use this order for auditing.
    """
    start = today.month
    return [((start - 1 + i) % 12) + 1 for i in range(12)]


def month_label(key: str) -> str:
    """``2024-03`` -> ``March 2024``."""
    year, month = parse_month_key(key)
    return f"{MONTH_NAMES[month - 1]} {year}"
