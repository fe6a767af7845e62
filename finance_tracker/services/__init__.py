"""Services package."""

from finance_tracker.services.bank_import import BankAccount, simulate_bank_transactions
from finance_tracker.services.storage import (
    FileLocalStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    LocalStore,
    MemoryLocalStore,
    RemoteStore,
    RemoteUnavailableError,
    StorageCorruptError,
    StorageCorruptWarning,
    StorageError,
)

__all__ = [
    # Bank import
    "BankAccount",
    "simulate_bank_transactions",
    # Storage services
    "FileLocalStore",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "LocalStore",
    "MemoryLocalStore",
    "RemoteStore",
    "RemoteUnavailableError",
    "StorageCorruptError",
    "StorageCorruptWarning",
    "StorageError",
]
