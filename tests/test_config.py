"""Tests for invest_ledger.config — LedgerConfig and environment loading."""
from __future__ import annotations

import pytest

from invest_ledger.config import LedgerConfig


class TestLedgerConfig:
    def test_defaults(self):
        config = LedgerConfig()
        assert config.currency == "GBP"
        assert config.locale == "en_GB"
        assert config.distribution_window_seconds == 60.0
        assert config.auth_token is None

    def test_api_root_strips_slash(self):
        assert LedgerConfig(base_url="https://api.example.com/api/").api_root == "https://api.example.com/api"

    @pytest.mark.parametrize(
        "kwargs",
        [{"timeout": 0}, {"distribution_window_seconds": -1}, {"max_workers": 0}],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            LedgerConfig(**kwargs)

    def test_from_env(self):
        config = LedgerConfig.from_env(
            {
                "INVEST_LEDGER_BASE_URL": "https://backend.test/api",
                "INVEST_LEDGER_TIMEOUT": "5",
                "INVEST_LEDGER_CURRENCY": "eur",
                "INVEST_LEDGER_MAX_WORKERS": "8",
                "INVEST_LEDGER_AUTH_TOKEN": "secret",
                "INVEST_LEDGER_LOCALE": "",
            }
        )
        assert config.base_url == "https://backend.test/api"
        assert config.timeout == 5.0
        assert config.currency == "EUR"
        assert config.max_workers == 8
        assert config.auth_token == "secret"
        assert config.locale == "en_GB"

    def test_from_env_empty(self):
        assert LedgerConfig.from_env({}) == LedgerConfig()
