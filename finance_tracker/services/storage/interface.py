"""
Abstract Storage Interface

DESIGN DECISION: Storage is two tiers behind two small contracts.
This allows us to:
1. Keep a durable local cache that is always the value of record
2. Mirror to any remote document store (Google Sheets today)
3. Use in-memory storage for testing
4. Keep the fallback policy in one place (the Sync Engine)

LocalStore is synchronous, like a browser's key-value storage.
RemoteStore is async: its calls are the only suspension points of the core.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional


class LocalStore(ABC):
    """
    Durable local key-value storage addressed by string keys.

    Values are strings; JSON helpers are provided on top.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the raw value stored under a key.

        Returns:
            The stored string, or None if the key is absent
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a raw string under a key, replacing any previous value.

        Raises:
            StorageError: If the value cannot be written
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Missing keys are ignored."""
        pass

    @abstractmethod
    def keys(self) -> Iterable[str]:
        """All keys currently stored."""
        pass

    def read_json(self, key: str, default: Any = None) -> Any:
        """
        Read and decode a JSON value.

        Returns:
            The decoded value, or `default` if the key is absent

        Raises:
            StorageCorruptError: If the stored text is not valid JSON
        """
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise StorageCorruptError(key, str(e)) from e

    def write_json(self, key: str, value: Any) -> None:
        """Encode a value as JSON and store it."""
        self.set(key, json.dumps(value, ensure_ascii=False))


class RemoteStore(ABC):
    """
    Abstract interface for a remote document store.

    Documents live in collections addressed by slash-separated paths,
    e.g. `profiles/hemank/transactions`. Every failure must surface as
    RemoteUnavailableError so callers can treat it uniformly.
    """

    @abstractmethod
    async def fetch_collection(self, path: str) -> dict[str, dict]:
        """
        Read every document in a collection.

        Returns:
            {document_id: document_data}; empty if the collection is empty
        """
        pass

    @abstractmethod
    async def set_document(self, path: str, doc_id: str, data: dict) -> None:
        """Create or replace a single document."""
        pass

    @abstractmethod
    async def delete_document(self, path: str, doc_id: str) -> None:
        """Delete a single document. Missing documents are ignored."""
        pass

    @abstractmethod
    async def replace_collection(self, path: str, docs: dict[str, dict]) -> None:
        """
        Replace the full contents of a collection.

        After this call the collection holds exactly `docs`.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageCorruptError(StorageError):
    """Local data could not be parsed."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Stored value for '{key}' is corrupt: {reason}")


class RemoteUnavailableError(StorageError):
    """Remote store unreachable, unauthorized or over quota."""
    pass


class StorageCorruptWarning(UserWarning):
    """Emitted when corrupt local data is replaced by a default value."""
    pass
