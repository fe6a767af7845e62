"""Local-first persistence with best-effort remote mirroring."""

from finance_tracker.sync.collections import (
    ARCHIVES,
    BUDGETS,
    COLLECTIONS,
    CUSTOM_FIELD_VALUES,
    CUSTOM_FIELDS,
    TRANSACTIONS,
    CollectionSpec,
    get_collection,
)
from finance_tracker.sync.migrations import Migration, rename_category_migration
from finance_tracker.sync.engine import DataSource, SyncEngine, SyncState

__all__ = [
    "ARCHIVES",
    "BUDGETS",
    "COLLECTIONS",
    "CUSTOM_FIELD_VALUES",
    "CUSTOM_FIELDS",
    "TRANSACTIONS",
    "CollectionSpec",
    "DataSource",
    "Migration",
    "SyncEngine",
    "SyncState",
    "get_collection",
    "rename_category_migration",
]
