"""
invest_ledger — Financial core of a multi-investor project admin console.

Public API surface:

    from invest_ledger import ProjectLedger, InvestmentProject, Participant
    from invest_ledger import compute_sale_distribution, SaleDistribution
    from invest_ledger import AuditLog, TransactionType
    from invest_ledger import InvestmentApiClient, InvestmentConsole, LedgerConfig
    from invest_ledger import returns
    from invest_ledger import visualization as viz
"""
from __future__ import annotations

# Core records and engines
from invest_ledger.accruals import AccrualBook, AccrualStatus, MonthlyAccrual, derive_status
from invest_ledger.audit import AuditEvent, AuditLog, LatestDistribution, TransactionType, event_from_dict
from invest_ledger.config import LedgerConfig
from invest_ledger.errors import (
    ConflictError,
    DuplicateParticipantError,
    LedgerError,
    NotFoundError,
    RemoteFailure,
    StatusTransitionError,
    ValidationError,
)
from invest_ledger.ledger import ProjectLedger
from invest_ledger.money import compute_share, quantize_money
from invest_ledger.periods import display_month_order, month_key, sort_month_keys
from invest_ledger.project import EntityStatus, InvestmentProject
from invest_ledger.sale import Payout, SaleDistribution, compute_sale_distribution
from invest_ledger.shares import Participant, ShareEngine
from invest_ledger.statements import StatementRow, monthly_statement

# Backend access
from invest_ledger.client import InvestmentApiClient, Page
from invest_ledger.console import InvestmentConsole
from invest_ledger.formatting import format_currency, transaction_label

# Submodules available for direct import
from invest_ledger import returns
from invest_ledger import visualization

__version__ = "0.1.0"

__all__ = [
    # Records
    "InvestmentProject",
    "EntityStatus",
    "Participant",
    "MonthlyAccrual",
    "AccrualStatus",
    # Engines
    "ShareEngine",
    "AccrualBook",
    "ProjectLedger",
    "derive_status",
    # Sale
    "Payout",
    "SaleDistribution",
    "compute_sale_distribution",
    # Audit
    "AuditEvent",
    "AuditLog",
    "LatestDistribution",
    "TransactionType",
    "event_from_dict",
    "StatementRow",
    "monthly_statement",
    # Money and periods
    "compute_share",
    "quantize_money",
    "month_key",
    "sort_month_keys",
    "display_month_order",
    "format_currency",
    "transaction_label",
    # Errors
    "LedgerError",
    "ValidationError",
    "ConflictError",
    "DuplicateParticipantError",
    "StatusTransitionError",
    "NotFoundError",
    "RemoteFailure",
    # Backend
    "LedgerConfig",
    "InvestmentApiClient",
    "InvestmentConsole",
    "Page",
    # Submodules
    "returns",
    "visualization",
    # Version
    "__version__",
]
