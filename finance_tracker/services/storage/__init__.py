"""
Storage Services Package

Provides the local and remote storage contracts and their implementations.
Google Sheets is the remote backend; the local store is file-based.
"""

from finance_tracker.services.storage.interface import (
    LocalStore,
    RemoteStore,
    RemoteUnavailableError,
    StorageCorruptError,
    StorageCorruptWarning,
    StorageError,
)
from finance_tracker.services.storage.local import FileLocalStore, MemoryLocalStore
from finance_tracker.services.storage.memory import InMemoryDocumentStore
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Interfaces
    "LocalStore",
    "RemoteStore",
    # Exceptions
    "RemoteUnavailableError",
    "StorageCorruptError",
    "StorageCorruptWarning",
    "StorageError",
    # Local implementations
    "FileLocalStore",
    "MemoryLocalStore",
    # Remote implementations
    "InMemoryDocumentStore",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
]
