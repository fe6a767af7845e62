"""In-memory remote document store, for tests and offline development."""

import copy
from typing import Optional

from finance_tracker.services.storage.interface import (
    RemoteStore,
    RemoteUnavailableError,
)


class InMemoryDocumentStore(RemoteStore):
    """
    Dict-backed RemoteStore.

    Set `available = False` to simulate a network outage: every call then
    raises RemoteUnavailableError.
    """

    def __init__(self, collections: Optional[dict[str, dict[str, dict]]] = None):
        self._collections: dict[str, dict[str, dict]] = copy.deepcopy(collections or {})
        self.available = True
        self.calls: list[tuple[str, str]] = []

    def _check(self, operation: str, path: str) -> None:
        self.calls.append((operation, path))
        if not self.available:
            raise RemoteUnavailableError(f"Remote store offline ({operation} {path})")

    def collection(self, path: str) -> dict[str, dict]:
        """Direct view of a collection, bypassing availability checks."""
        return copy.deepcopy(self._collections.get(path, {}))

    async def fetch_collection(self, path: str) -> dict[str, dict]:
        self._check("fetch", path)
        return copy.deepcopy(self._collections.get(path, {}))

    async def set_document(self, path: str, doc_id: str, data: dict) -> None:
        self._check("set", path)
        self._collections.setdefault(path, {})[doc_id] = copy.deepcopy(data)

    async def delete_document(self, path: str, doc_id: str) -> None:
        self._check("delete", path)
        self._collections.get(path, {}).pop(doc_id, None)

    async def replace_collection(self, path: str, docs: dict[str, dict]) -> None:
        self._check("replace", path)
        self._collections[path] = copy.deepcopy(docs)
