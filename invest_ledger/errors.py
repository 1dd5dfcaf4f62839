"""
errors.py — Typed error taxonomy for ledger operations.

No imports from within this library.
"""
from __future__ import annotations

from typing import Optional


class LedgerError(Exception):
    """Base class for every error raised by invest_ledger."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(LedgerError):
    """
    Caller-supplied value out of range, missing selection, or an operation
    attempted in a terminal state. The operation is a no-op.
    """


class ConflictError(LedgerError):
    """Concurrent modification detected; refetch and retry."""


class DuplicateParticipantError(ValidationError, ConflictError):
    """Investor already holds an active position in the project."""


class StatusTransitionError(ValidationError):
    """Accrual status would move backwards."""


class NotFoundError(LedgerError):
    """Referenced project, participant or accrual does not exist."""


class RemoteFailure(LedgerError):
    """Backend unreachable, timed out, failed (5xx) or returned garbage."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message, field=field)
        self.status_code = status_code
