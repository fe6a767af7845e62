"""
Sync Engine

DESIGN DECISION: Local storage is written first and is the value of record.
The remote document store is a best-effort mirror:

    save: local write (always) -> remote full-replace (if configured)
    load: remote (if configured, reachable and non-empty) -> local -> default

Remote failures of any kind are caught, logged, and demote the collection's
sync state to LOCAL. They never propagate to the caller, so the user action
that triggered the save is successful as soon as the local write is.

State machine, per collection:
    LOCAL  --remote call-->  SYNCING  --ok-->  SYNCED
                             SYNCING  --error-->  LOCAL

There is no retry or write queue: each save independently attempts the
remote and may independently fall back. Remote writes issued in quick
succession may complete out of order.
"""

import copy
import warnings
from enum import Enum
from typing import Any, Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.services.storage import (
    LocalStore,
    RemoteStore,
    StorageCorruptError,
    StorageCorruptWarning,
    StorageError,
)
from finance_tracker.sync.collections import COLLECTIONS, CollectionSpec, get_collection
from finance_tracker.sync.migrations import Migration


class SyncState(str, Enum):
    """Observable sync status of a collection."""
    LOCAL = "local"
    SYNCING = "syncing"
    SYNCED = "synced"


class DataSource(str, Enum):
    """Where the last loaded value of a collection came from."""
    REMOTE = "remote"
    LOCAL = "local"
    DEFAULT = "default"


_MISSING = object()


class SyncEngine:
    """
    Persists profile collections locally and mirrors them remotely.

    One engine serves every profile; collections are namespaced by profile
    in both stores.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: Optional[RemoteStore] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._local = local
        self._remote = remote
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)
        self._states: dict[str, SyncState] = {name: SyncState.LOCAL for name in COLLECTIONS}
        self._sources: dict[str, DataSource] = {}
        self._warnings: list[str] = []

    @property
    def local(self) -> LocalStore:
        return self._local

    @property
    def remote_configured(self) -> bool:
        return self._remote is not None

    @property
    def warnings(self) -> list[str]:
        """Non-fatal problems surfaced while loading (e.g. corrupt local data)."""
        return list(self._warnings)

    def status(self, collection: str) -> SyncState:
        return self._states[get_collection(collection).name]

    def overall_status(self) -> SyncState:
        """SYNCING if anything is in flight, LOCAL if anything fell back, else SYNCED."""
        states = set(self._states.values())
        if SyncState.SYNCING in states:
            return SyncState.SYNCING
        if SyncState.LOCAL in states:
            return SyncState.LOCAL
        return SyncState.SYNCED

    def last_source(self, collection: str) -> Optional[DataSource]:
        return self._sources.get(get_collection(collection).name)

    def _demote(self, spec: CollectionSpec, profile: str, operation: str, error: Exception) -> None:
        self._states[spec.name] = SyncState.LOCAL
        self._logger.warning(
            "remote_sync_failed",
            collection=spec.name,
            profile=profile,
            operation=operation,
            error=str(error),
        )
        if self._audit_logger:
            self._audit_logger.log_remote_sync_failed(
                collection=spec.name,
                profile=profile,
                operation=operation,
                error_message=str(error),
            )

    def _surface_corruption(self, spec: CollectionSpec, profile: str, error: StorageCorruptError) -> None:
        message = f"{error}; using empty {spec.name}"
        self._warnings.append(message)
        self._logger.error("local_storage_corrupt", key=error.key, error=error.reason)
        if self._audit_logger:
            self._audit_logger.log_storage_corrupt(error.key, profile, error.reason)
        warnings.warn(message, StorageCorruptWarning, stacklevel=3)

    async def save(self, collection: str, profile: str, value: Any) -> None:
        """
        Write a collection through to local storage, then mirror it remotely.

        Raises:
            StorageError: Only if the LOCAL write fails. Remote errors are absorbed.
        """
        spec = get_collection(collection)
        self._local.write_json(spec.local_key(profile), value)

        if self._remote is None:
            self._states[spec.name] = SyncState.LOCAL
            return

        self._states[spec.name] = SyncState.SYNCING
        path = spec.remote_path(profile)
        try:
            if spec.is_single_document:
                await self._remote.set_document(path, spec.document_id, spec.to_document(value))
            else:
                await self._remote.replace_collection(path, spec.to_documents(value))
        except Exception as e:
            self._demote(spec, profile, "save", e)
        else:
            self._states[spec.name] = SyncState.SYNCED

    async def load(self, collection: str, profile: str, default: Any = _MISSING) -> Any:
        """
        Load a collection, preferring a non-empty remote copy.

        Falls back to local storage on remote error or empty result, and to
        `default` (the collection's empty value if omitted) when local data is
        missing or corrupt. Corruption emits a StorageCorruptWarning; it never
        raises.
        """
        spec = get_collection(collection)
        if default is _MISSING:
            default = spec.empty()
        key = spec.local_key(profile)

        if self._remote is not None:
            self._states[spec.name] = SyncState.SYNCING
            try:
                docs = await self._remote.fetch_collection(spec.remote_path(profile))
            except Exception as e:
                self._demote(spec, profile, "load", e)
            else:
                self._states[spec.name] = SyncState.SYNCED
                value = spec.from_documents(docs)
                if value is not None:
                    self._cache_locally(key, value)
                    self._sources[spec.name] = DataSource.REMOTE
                    return value

        try:
            value = self._local.read_json(key, _MISSING)
        except StorageCorruptError as e:
            self._surface_corruption(spec, profile, e)
            value = _MISSING

        if value is _MISSING:
            self._sources[spec.name] = DataSource.DEFAULT
            return copy.deepcopy(default)

        self._sources[spec.name] = DataSource.LOCAL
        return value

    def _cache_locally(self, key: str, value: Any) -> None:
        try:
            self._local.write_json(key, value)
        except StorageError as e:
            self._logger.warning("local_cache_write_failed", key=key, error=str(e))

    def migration_applied(self, profile: str, migration: Migration) -> bool:
        try:
            return self._local.read_json(migration.marker_key(profile), False) is True
        except StorageCorruptError:
            return False

    async def run_migration(self, profile: str, migration: Migration) -> bool:
        """
        Apply a one-shot migration to a profile unless its marker is set.

        The marker `migrated_{name}_{profile}` is written to local storage only
        after every collection has been transformed and saved.

        Returns:
            True if the migration ran, False if it had already been applied
        """
        if self.migration_applied(profile, migration):
            return False

        for name in migration.collections:
            spec = get_collection(name)
            value = await self.load(spec.name, profile, spec.empty())
            await self.save(spec.name, profile, migration.transform(spec.name, value))

        self._local.write_json(migration.marker_key(profile), True)
        self._logger.info("migration_applied", migration=migration.name, profile=profile)
        if self._audit_logger:
            self._audit_logger.log_migration_applied(profile, migration.name)
        return True
