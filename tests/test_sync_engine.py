"""
Tests for the Sync Engine: local-first saves, remote mirroring, fallback
and one-shot migrations.
"""

import asyncio
import json

import pytest

from finance_tracker.models.audit import AuditEventType
from finance_tracker.services.storage import (
    InMemoryDocumentStore,
    StorageCorruptWarning,
)
from finance_tracker.sync import (
    DataSource,
    SyncEngine,
    SyncState,
    get_collection,
    rename_category_migration,
)

from conftest import make_transaction, run


class GatedDocumentStore(InMemoryDocumentStore):
    """In-memory remote whose calls wait until `release` is set."""

    def __init__(self, collections=None):
        super().__init__(collections)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def _gate(self):
        self.entered.set()
        await self.release.wait()

    async def fetch_collection(self, path):
        await self._gate()
        return await super().fetch_collection(path)

    async def replace_collection(self, path, docs):
        await self._gate()
        await super().replace_collection(path, docs)


class TestSave:
    """Tests for SyncEngine.save."""

    def test_save_writes_local_then_remote(self, sync_engine, local_store, remote_store):
        value = [make_transaction(1).to_storage(), make_transaction(2).to_storage()]
        run(sync_engine.save("transactions", "hemank", value))

        assert json.loads(local_store.get("transactions_hemank")) == value
        assert set(remote_store.collection("profiles/hemank/transactions")) == {"1", "2"}
        assert sync_engine.status("transactions") == SyncState.SYNCED

    def test_save_replaces_whole_remote_collection(self, sync_engine, remote_store):
        run(sync_engine.save("transactions", "hemank", [make_transaction(1).to_storage()]))
        run(sync_engine.save("transactions", "hemank", [make_transaction(2).to_storage()]))
        assert set(remote_store.collection("profiles/hemank/transactions")) == {"2"}

    def test_remote_failure_is_absorbed(self, sync_engine, local_store, remote_store, audit_logger):
        remote_store.available = False
        value = [make_transaction(1).to_storage()]

        run(sync_engine.save("transactions", "hemank", value))

        assert json.loads(local_store.get("transactions_hemank")) == value
        assert sync_engine.status("transactions") == SyncState.LOCAL
        assert sync_engine.overall_status() == SyncState.LOCAL
        assert audit_logger.history[-1].event_type == AuditEventType.REMOTE_SYNC_FAILED

    def test_recovers_to_synced(self, sync_engine, remote_store):
        remote_store.available = False
        run(sync_engine.save("budgets", "hemank", {"Courses": 300.0}))
        remote_store.available = True
        run(sync_engine.save("budgets", "hemank", {"Courses": 300.0}))
        assert sync_engine.status("budgets") == SyncState.SYNCED

    def test_syncing_while_remote_save_pending(self, local_store, audit_logger):
        value = [make_transaction(1).to_storage()]

        async def scenario():
            remote = GatedDocumentStore()
            engine = SyncEngine(local_store, remote, audit_logger)
            pending = asyncio.create_task(engine.save("transactions", "hemank", value))
            await remote.entered.wait()

            assert engine.status("transactions") == SyncState.SYNCING
            assert engine.overall_status() == SyncState.SYNCING
            # Local copy is readable before the remote call completes
            assert local_store.read_json("transactions_hemank") == value
            assert remote.collection("profiles/hemank/transactions") == {}

            remote.release.set()
            await pending
            assert engine.status("transactions") == SyncState.SYNCED
            assert set(remote.collection("profiles/hemank/transactions")) == {"1"}

        run(scenario())

    def test_syncing_while_remote_load_pending(self, local_store):
        async def scenario():
            remote = GatedDocumentStore({
                "profiles/hemank/transactions": {"7": make_transaction(7).to_storage()},
            })
            engine = SyncEngine(local_store, remote)
            pending = asyncio.create_task(engine.load("transactions", "hemank"))
            await remote.entered.wait()

            assert engine.status("transactions") == SyncState.SYNCING

            remote.release.set()
            value = await pending
            assert [item["id"] for item in value] == [7]
            assert engine.status("transactions") == SyncState.SYNCED

        run(scenario())

    def test_local_only_engine(self, local_only_engine, local_store):
        run(local_only_engine.save("budgets", "hemank", {"Courses": 300.0}))
        assert json.loads(local_store.get("categoryBudgets_hemank")) == {"Courses": 300.0}
        assert local_only_engine.status("budgets") == SyncState.LOCAL
        assert not local_only_engine.remote_configured

    def test_custom_field_documents_share_a_collection(self, sync_engine, remote_store):
        run(sync_engine.save("custom_fields", "hemank", [{"name": "Employeur", "type": "text"}]))
        run(sync_engine.save("custom_field_values", "hemank", {"Employeur": "ACME"}))
        docs = remote_store.collection("profiles/hemank/customFields")
        assert docs == {
            "fields": {"items": [{"name": "Employeur", "type": "text"}]},
            "values": {"Employeur": "ACME"},
        }

    def test_budgets_document_path(self, sync_engine, remote_store):
        run(sync_engine.save("budgets", "hemank", {"Courses": 300.0}))
        assert remote_store.collection("profiles/hemank/settings") == {
            "categoryBudgets": {"Courses": 300.0}
        }


class TestLoad:
    """Tests for SyncEngine.load precedence and fallback."""

    def test_prefers_non_empty_remote(self, local_store, audit_logger):
        remote = InMemoryDocumentStore({
            "profiles/hemank/transactions": {"7": make_transaction(7).to_storage()},
        })
        local_store.write_json("transactions_hemank", [make_transaction(1).to_storage()])
        engine = SyncEngine(local_store, remote, audit_logger)

        value = run(engine.load("transactions", "hemank"))

        assert [item["id"] for item in value] == [7]
        assert engine.last_source("transactions") == DataSource.REMOTE
        # Remote data is cached locally
        assert local_store.read_json("transactions_hemank") == value

    def test_empty_remote_falls_back_to_local(self, sync_engine, local_store):
        local_store.write_json("transactions_hemank", [make_transaction(1).to_storage()])
        value = run(sync_engine.load("transactions", "hemank"))
        assert [item["id"] for item in value] == [1]
        assert sync_engine.last_source("transactions") == DataSource.LOCAL

    def test_unreachable_remote_falls_back_to_local(self, sync_engine, local_store, remote_store):
        remote_store.available = False
        local_store.write_json("categoryBudgets_hemank", {"Courses": 300.0})
        assert run(sync_engine.load("budgets", "hemank")) == {"Courses": 300.0}
        assert sync_engine.status("budgets") == SyncState.LOCAL

    def test_missing_everywhere_returns_default(self, sync_engine):
        assert run(sync_engine.load("archives", "hemank")) == []
        assert run(sync_engine.load("budgets", "hemank")) == {}
        assert sync_engine.last_source("budgets") == DataSource.DEFAULT

    def test_explicit_default(self, local_only_engine):
        assert run(local_only_engine.load("budgets", "hemank", {"x": 1.0})) == {"x": 1.0}

    def test_corrupt_local_data_yields_default_with_warning(self, local_only_engine, local_store, audit_logger):
        local_store.set("transactions_hemank", "{not json")

        with pytest.warns(StorageCorruptWarning):
            value = run(local_only_engine.load("transactions", "hemank"))

        assert value == []
        assert local_only_engine.warnings
        assert audit_logger.history[-1].event_type == AuditEventType.STORAGE_CORRUPT

    def test_archives_from_remote_are_latest_first(self, local_store):
        def archive_doc(key):
            return {
                "key": key, "month": "Janvier", "year": int(key[:4]),
                "archivedDate": "2024-06-01T00:00:00Z", "transactions": [],
                "summary": {"totalIncome": 0, "totalExpense": 0, "balance": 0, "transactionCount": 0},
            }

        remote = InMemoryDocumentStore({
            "profiles/hemank/archived": {
                "2023-11": archive_doc("2023-11"),
                "2024-02": archive_doc("2024-02"),
                "2024-01": archive_doc("2024-01"),
            },
        })
        engine = SyncEngine(local_store, remote)
        value = run(engine.load("archives", "hemank"))
        assert [item["key"] for item in value] == ["2024-02", "2024-01", "2023-11"]

    def test_profiles_are_isolated(self, sync_engine):
        run(sync_engine.save("budgets", "hemank", {"Courses": 300.0}))
        assert run(sync_engine.load("budgets", "partner")) == {}


class TestCollections:
    """Tests for collection naming."""

    def test_local_keys(self):
        assert get_collection("transactions").local_key("hemank") == "transactions_hemank"
        assert get_collection("archives").local_key("hemank") == "archived_hemank"
        assert get_collection("budgets").local_key("hemank") == "categoryBudgets_hemank"

    def test_unknown_collection(self):
        with pytest.raises(KeyError):
            get_collection("bills")


class TestMigrations:
    """Tests for one-shot migrations."""

    def _seed(self, local_store):
        local_store.write_json("transactions_hemank", [
            make_transaction(1, category="Appartement").to_storage(),
            make_transaction(2, category="Courses").to_storage(),
        ])
        local_store.write_json("archived_hemank", [{
            "key": "2024-01", "month": "Janvier", "year": 2024,
            "archivedDate": "2024-02-01T00:00:00Z",
            "transactions": [make_transaction(3, amount="850.00", category="Appartement").to_storage()],
            "summary": {"totalIncome": 0, "totalExpense": 850, "balance": -850, "transactionCount": 1},
        }])

    def test_rename_runs_once(self, local_store):
        self._seed(local_store)
        engine = SyncEngine(local_store)
        migration = rename_category_migration("renameAppartement", "Appartement", "Logement")

        assert run(engine.run_migration("hemank", migration)) is True
        assert local_store.read_json("migrated_renameAppartement_hemank") is True

        transactions = local_store.read_json("transactions_hemank")
        assert [t["category"] for t in transactions] == ["Logement", "Courses"]
        archive = local_store.read_json("archived_hemank")[0]
        assert archive["transactions"][0]["category"] == "Logement"
        assert archive["summary"]["totalExpense"] == 850

        # A second run is a no-op even if old data reappears
        local_store.write_json("transactions_hemank", [
            make_transaction(4, category="Appartement").to_storage(),
        ])
        assert run(engine.run_migration("hemank", migration)) is False
        assert local_store.read_json("transactions_hemank")[0]["category"] == "Appartement"

    def test_marker_is_per_profile(self, local_store):
        self._seed(local_store)
        engine = SyncEngine(local_store)
        migration = rename_category_migration("renameAppartement", "Appartement", "Logement")
        run(engine.run_migration("hemank", migration))
        assert not engine.migration_applied("partner", migration)
        assert engine.migration_applied("hemank", migration)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
