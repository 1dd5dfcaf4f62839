"""Tests for invest_ledger.periods — month keys."""
from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from invest_ledger.errors import ValidationError
from invest_ledger.periods import (
    display_month_order,
    month_key,
    month_label,
    months_in_year,
    parse_month_key,
    sort_month_keys,
)


class TestMonthKey:
    def test_from_date(self):
        assert month_key(date(2024, 3, 9)) == "2024-03"
        assert month_key(datetime(1999, 12, 31, 23, 59, tzinfo=timezone.utc)) == "1999-12"

    def test_from_parts(self):
        assert month_key(year=2025, month=1) == "2025-01"

    def test_invalid(self):
        with pytest.raises(ValidationError):
            month_key()
        with pytest.raises(ValidationError):
            month_key(year=2024, month=13)

    @pytest.mark.parametrize("bad", ["2024-3", "2024/03", "24-03", "2024-00", None, ""])
    def test_parse_rejects_malformed(self, bad):
        with pytest.raises(ValidationError):
            parse_month_key(bad)

    def test_parse(self):
        assert parse_month_key("2024-11") == (2024, 11)


class TestOrdering:
    def test_chronological(self):
        keys = ["2024-11", "2023-12", "2024-02"]
        assert sort_month_keys(keys) == ["2023-12", "2024-02", "2024-11"]
        assert sort_month_keys(keys, reverse=True)[0] == "2024-11"

    def test_months_in_year(self):
        months = months_in_year(2024)
        assert len(months) == 12
        assert months[0] == "2024-01" and months[-1] == "2024-12"

    def test_display_order_starts_at_current_month(self):
        order = display_month_order(date(2024, 3, 15))
        assert order[:3] == [3, 4, 5]
        assert order[-2:] == [1, 2]
        assert sorted(order) == list(range(1, 13))

    def test_label(self):
        assert month_label("2024-03") == "March 2024"
