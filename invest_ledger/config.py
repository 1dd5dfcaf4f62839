"""
config.py — Runtime configuration for the ledger and its API client.

No imports from within this library.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

ENV_PREFIX = "INVEST_LEDGER_"


@dataclass(frozen=True)
class LedgerConfig:
    """Configuration shared by the ledger, the console and the API client."""

    base_url: str = "http://localhost:5000/api"
    timeout: float = 15.0  # seconds, applied to every HTTP call
    currency: str = "GBP"
    locale: str = "en_GB"
    distribution_window_seconds: float = 60.0  # legacy event grouping only
    max_workers: int = 3  # parallel read fetches
    auth_token: Optional[str] = None

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.distribution_window_seconds < 0:
            raise ValueError("distribution_window_seconds cannot be negative")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @property
    def api_root(self) -> str:
        return self.base_url.rstrip("/")

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "LedgerConfig":
        """
        Build a config from ``INVEST_LEDGER_*`` environment variables.

        Unset variables keep the dataclass defaults.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def _get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        return cls(
            base_url=_get("BASE_URL") or defaults.base_url,
            timeout=float(_get("TIMEOUT") or defaults.timeout),
            currency=(_get("CURRENCY") or defaults.currency).upper(),
            locale=_get("LOCALE") or defaults.locale,
            distribution_window_seconds=float(
                _get("DISTRIBUTION_WINDOW") or defaults.distribution_window_seconds
            ),
            max_workers=int(_get("MAX_WORKERS") or defaults.max_workers),
            auth_token=_get("AUTH_TOKEN"),
        )
