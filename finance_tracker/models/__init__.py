"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.transaction import (
    MAX_AMOUNT,
    MAX_CATEGORY_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MONTH_NAMES,
    Archive,
    ArchiveSummary,
    BudgetBand,
    BudgetStatus,
    CustomField,
    CustomFieldType,
    ExportSnapshot,
    LedgerSummary,
    Money,
    Transaction,
    TransactionFilter,
    TransactionType,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MAX_AMOUNT",
    "MAX_CATEGORY_LENGTH",
    "MAX_DESCRIPTION_LENGTH",
    "MONTH_NAMES",
    "Archive",
    "ArchiveSummary",
    "BudgetBand",
    "BudgetStatus",
    "CustomField",
    "CustomFieldType",
    "ExportSnapshot",
    "LedgerSummary",
    "Money",
    "Transaction",
    "TransactionFilter",
    "TransactionType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
