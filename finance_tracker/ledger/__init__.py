"""Ledger, archive, budget and custom-field state for one profile."""

from finance_tracker.ledger.ledger import IdGenerator, Ledger, summarize
from finance_tracker.ledger.archive_store import (
    AlreadyExists,
    ArchiveOrder,
    ArchiveStore,
    DuplicateKeyError,
    build_archive,
    snapshot_key_for,
)
from finance_tracker.ledger.budget_tracker import BudgetTracker, compute_status
from finance_tracker.ledger.custom_fields import CustomFieldSet

__all__ = [
    "AlreadyExists",
    "ArchiveOrder",
    "ArchiveStore",
    "BudgetTracker",
    "CustomFieldSet",
    "DuplicateKeyError",
    "IdGenerator",
    "Ledger",
    "build_archive",
    "compute_status",
    "snapshot_key_for",
    "summarize",
]
