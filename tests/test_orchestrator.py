"""
Integration tests for profile sessions and the FinanceTracker facade.

All flows run against in-memory local and remote stores.
"""

import json
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from finance_tracker.exports import InvalidFormatError, snapshot_to_json
from finance_tracker.ledger import DuplicateKeyError
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.transaction import TransactionFilter, TransactionType
from finance_tracker.orchestrator import (
    CURRENT_PROFILE_KEY,
    ProfileError,
    ProfileLockedError,
    ProfileSession,
    create_app_components,
)
from finance_tracker.services import BankAccount
from finance_tracker.services.storage import InMemoryDocumentStore, MemoryLocalStore
from finance_tracker.sync import SyncState, rename_category_migration
from finance_tracker.validation import TransactionValidator, ValidationError

from conftest import run


SALARY = {
    "type": "income",
    "amount": "2500.00",
    "category": "Salaire",
    "description": "Paie janvier",
    "date": "2024-01-01",
}
RENT = {
    "type": "expense",
    "amount": "850.00",
    "category": "Appartement",
    "description": "Loyer",
    "date": "2024-01-03",
}


def groceries(amount, day=10):
    return {
        "type": "expense",
        "amount": amount,
        "category": "Courses",
        "description": "Supermarché",
        "date": f"2024-01-{day:02d}",
    }


def state_of(session):
    return (
        session.ledger.to_storage(),
        session.archive_store.to_storage(),
        session.budget_tracker.to_storage(),
        session.custom_fields.to_storage(),
    )


class TestLedgerFlow:
    """Tests for ledger operations through a session."""

    def test_salary_and_rent_summary(self, session):
        run(session.add_transaction(SALARY))
        run(session.add_transaction(RENT))

        summary = session.summary()
        assert summary.income == Decimal("2500")
        assert summary.expense == Decimal("850")
        assert summary.balance == Decimal("1650")
        assert summary.count == 2
        assert session.categories() == {"Salaire", "Appartement"}

    def test_add_persists_locally_and_remotely(self, session, local_store, remote_store):
        transaction = run(session.add_transaction(RENT))

        stored = json.loads(local_store.get("transactions_hemank"))
        assert [item["id"] for item in stored] == [transaction.id]
        assert str(transaction.id) in remote_store.collection("profiles/hemank/transactions")

    def test_rejected_input_leaves_ledger_unchanged(self, session, local_store, audit_logger):
        run(session.add_transaction(RENT))
        before = local_store.get("transactions_hemank")

        with pytest.raises(ValidationError) as exc_info:
            run(session.add_transaction({**RENT, "amount": "0"}))

        assert exc_info.value.kind == "amount_out_of_range"
        assert len(session.ledger) == 1
        assert local_store.get("transactions_hemank") == before
        assert audit_logger.history[-1].event_type == AuditEventType.TRANSACTION_REJECTED

    def test_ids_are_unique_and_increasing(self, session):
        ids = [run(session.add_transaction(groceries("5"))).id for _ in range(5)]
        assert ids == sorted(set(ids))

    def test_remove_and_clear(self, session):
        first = run(session.add_transaction(RENT))
        run(session.add_transaction(SALARY))

        assert run(session.remove_transaction(first.id)) is True
        assert run(session.remove_transaction(first.id)) is False
        assert run(session.clear_transactions()) == 1
        assert len(session.ledger) == 0

    def test_add_succeeds_while_remote_is_down(self, session, local_store, remote_store):
        remote_store.available = False
        transaction = run(session.add_transaction(RENT))

        assert session.ledger.get(transaction.id) is not None
        assert local_store.read_json("transactions_hemank")[0]["id"] == transaction.id
        assert session.sync_engine.status("transactions") == SyncState.LOCAL

    def test_filtered_summary(self, session):
        run(session.add_transaction(SALARY))
        run(session.add_transaction(groceries("20")))
        run(session.add_transaction(groceries("30")))
        summary = session.summary(TransactionFilter(type=TransactionType.EXPENSE, category="Courses"))
        assert summary.expense == Decimal("50")
        assert summary.count == 2


class TestBankImport:
    """Tests for the simulated bank import."""

    def test_imported_transactions_are_flagged(self, session):
        account = BankAccount(id="acc-1", name="Compte courant")
        imported = run(session.import_bank_transactions(
            account, count=3, start=date(2024, 1, 1), seed=7
        ))

        assert len(imported) == 3
        assert len(session.ledger) == 3
        assert all(t.imported is True for t in imported)
        assert all(t.bank_account == "acc-1" for t in imported)
        assert [t.date for t in imported] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]

    def test_import_is_reproducible_with_seed(self, session):
        account = BankAccount(id="acc-1", name="Compte courant")
        first = run(session.import_bank_transactions(account, count=4, start=date(2024, 1, 1), seed=3))
        second = run(session.import_bank_transactions(account, count=4, start=date(2024, 1, 1), seed=3))
        assert [t.amount for t in first] == [t.amount for t in second]
        assert [t.category for t in first] == [t.category for t in second]

    def test_income_rows_follow_configured_categories(self, sync_engine):
        session = run(ProfileSession.open(
            "hemank",
            sync_engine,
            validator=TransactionValidator(("Salaire", "Freelance")),
        ))
        account = BankAccount(id="acc-1", name="Compte courant")

        imported = run(session.import_bank_transactions(account, count=60, seed=1))

        income = [t for t in imported if t.type == TransactionType.INCOME]
        assert income
        assert {t.category for t in income} <= {"Salaire", "Freelance"}
        assert len(session.ledger) == 60


class TestArchiveFlow:
    """Tests for month archiving through a session."""

    def test_archive_january_then_clear(self, session):
        run(session.add_transaction(SALARY))
        run(session.add_transaction(RENT))

        archive = run(session.archive_month("2024-01"))
        run(session.clear_transactions())

        archives = session.archives()
        assert [a.key for a in archives] == ["2024-01"]
        assert archives[0].summary.transaction_count == 2
        assert archive.summary.balance == Decimal("1650")
        assert len(session.ledger) == 0

    def test_archiving_twice_requires_force(self, session, audit_logger):
        run(session.add_transaction(SALARY))
        run(session.archive_month("2024-01"))
        run(session.add_transaction(RENT))

        with pytest.raises(DuplicateKeyError):
            run(session.archive_month("2024-01"))
        assert session.archive_store.get("2024-01").summary.transaction_count == 1

        replaced = run(session.archive_month("2024-01", force=True))
        assert replaced.summary.transaction_count == 2
        assert audit_logger.history[-1].event_type == AuditEventType.ARCHIVE_REPLACED

    @pytest.mark.parametrize("key", ["2024-13", "24-1", "2024-00"])
    def test_malformed_month_key_rejected(self, session, local_store, key):
        run(session.add_transaction(RENT))

        with pytest.raises(ValidationError) as exc_info:
            run(session.start_new_month(key))

        assert exc_info.value.kind == "invalid_key"
        assert session.archives() == []
        assert len(session.ledger) == 1
        assert local_store.get("archived_hemank") is None

    def test_start_new_month(self, session, local_store):
        run(session.add_transaction(RENT))
        run(session.start_new_month("2024-01"))

        assert len(session.ledger) == 0
        assert local_store.read_json("transactions_hemank") == []
        assert local_store.read_json("archived_hemank")[0]["key"] == "2024-01"

    def test_remove_archive(self, session):
        run(session.archive_month("2024-01"))
        assert run(session.remove_archive("2024-01")) is True
        assert run(session.remove_archive("2024-01")) is False
        assert session.archives() == []

    def test_month_key_uses_configured_timezone(self, sync_engine, validator):
        session = run(ProfileSession.open(
            "hemank",
            sync_engine,
            validator=validator,
            month_key_timezone=ZoneInfo("Europe/Paris"),
        ))
        moment = datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc)
        assert session.month_key(moment) == "2024-02"


class TestBudgetFlow:
    """Tests for budgets through a session."""

    def test_groceries_over_budget(self, session):
        run(session.set_budget("Courses", "300"))
        run(session.add_transaction(groceries("200", day=5)))
        run(session.add_transaction(groceries("120", day=12)))

        status = session.budget_status("Courses")
        assert status.remaining == Decimal("-20")
        assert round(status.percent_used, 2) == Decimal("106.67")
        assert status.is_over_budget

    def test_budgets_survive_clear(self, session):
        run(session.set_budget("Courses", "300"))
        run(session.add_transaction(groceries("50")))
        run(session.clear_transactions())

        assert session.budget_tracker.get("Courses") == Decimal("300")
        assert session.budget_status("Courses").spent == Decimal("0")

    def test_overview(self, session):
        run(session.set_budget("Courses", "300"))
        run(session.set_budget("Appartement", "900"))
        run(session.add_transaction(RENT))

        statuses, total = session.budget_overview()
        assert [s.category for s in statuses] == ["Appartement", "Courses"]
        assert total.budget == Decimal("1200")
        assert total.spent == Decimal("850")

    def test_invalid_budget_not_saved(self, session, local_store):
        with pytest.raises(ValidationError):
            run(session.set_budget("Courses", "-1"))
        assert local_store.get("categoryBudgets_hemank") is None


class TestCustomFieldFlow:
    """Tests for user-defined fields."""

    def test_add_and_set_value(self, session, remote_store):
        run(session.add_custom_field("Employeur"))
        run(session.set_custom_field_value("Employeur", "ACME"))

        assert session.custom_fields.values == {"Employeur": "ACME"}
        assert remote_store.collection("profiles/hemank/customFields")["values"] == {"Employeur": "ACME"}

    def test_duplicate_field_name(self, session):
        run(session.add_custom_field("Employeur"))
        with pytest.raises(ValidationError) as exc_info:
            run(session.add_custom_field("Employeur"))
        assert exc_info.value.kind == "duplicate_name"

    def test_numeric_field_rejects_text(self, session):
        run(session.add_custom_field("Épargne cible", "currency"))
        with pytest.raises(ValidationError):
            run(session.set_custom_field_value("Épargne cible", "beaucoup"))

    def test_unknown_field(self, session):
        with pytest.raises(ValidationError) as exc_info:
            run(session.set_custom_field_value("Inconnu", "x"))
        assert exc_info.value.kind == "unknown_field"

    def test_remove_field_drops_value(self, session):
        run(session.add_custom_field("Employeur"))
        run(session.set_custom_field_value("Employeur", "ACME"))
        assert run(session.remove_custom_field("Employeur")) is True
        assert session.custom_fields.values == {}


class TestProfiles:
    """Tests for profile switching and the PIN lock."""

    def _populate(self, session):
        run(session.add_transaction(SALARY))
        run(session.add_transaction(RENT))
        run(session.archive_month("2024-01"))
        run(session.set_budget("Appartement", "900"))
        run(session.add_custom_field("Employeur"))
        run(session.set_custom_field_value("Employeur", "ACME"))

    def test_switch_round_trip_preserves_state(self, tracker):
        hemank = run(tracker.switch_profile("hemank"))
        self._populate(hemank)
        before = state_of(hemank)

        partner = run(tracker.switch_profile("partner", pin="4321"))
        assert len(partner.ledger) == 0
        assert partner.archives() == []
        run(partner.add_transaction(groceries("12")))

        restored = run(tracker.switch_profile("hemank"))
        assert state_of(restored) == before

    def test_switch_round_trip_local_only(self, local_store, local_only_engine, validator):
        from finance_tracker.orchestrator import FinanceTracker, ProfileRegistry

        tracker = FinanceTracker(
            registry=ProfileRegistry(("hemank", "partner"), local_store),
            sync_engine=local_only_engine,
            validator=validator,
        )
        hemank = run(tracker.switch_profile("hemank"))
        self._populate(hemank)
        before = state_of(hemank)

        run(tracker.switch_profile("partner"))
        restored = run(tracker.switch_profile("hemank"))
        assert state_of(restored) == before

    def test_switch_round_trip_keeps_exact_amounts(self, tracker):
        hemank = run(tracker.switch_profile("hemank"))
        with pytest.raises(ValidationError) as exc_info:
            run(hemank.add_transaction(groceries("0.12345678901234567891")))
        assert exc_info.value.kind == "invalid_precision"

        run(hemank.add_transaction(groceries("999999998.99")))
        run(hemank.add_transaction(groceries("0.07")))
        run(hemank.set_budget("Courses", "1234567.89"))
        before = state_of(hemank)

        run(tracker.switch_profile("partner", pin="4321"))
        restored = run(tracker.switch_profile("hemank"))

        assert state_of(restored) == before
        assert [t.amount for t in restored.ledger] == [Decimal("999999998.99"), Decimal("0.07")]
        assert restored.budget_tracker.get("Courses") == Decimal("1234567.89")

    def test_no_data_bleeds_across_profiles(self, tracker, local_store):
        hemank = run(tracker.switch_profile("hemank"))
        run(hemank.add_transaction(RENT))
        run(tracker.switch_profile("partner", pin="4321"))

        assert local_store.read_json("transactions_partner", []) == []
        assert tracker.session.summary().count == 0
        assert tracker.current_profile == "partner"

    def test_locked_profile_requires_pin(self, tracker, audit_logger):
        run(tracker.switch_profile("hemank"))

        with pytest.raises(ProfileLockedError):
            run(tracker.switch_profile("partner"))
        with pytest.raises(ProfileLockedError):
            run(tracker.switch_profile("partner", pin="0000"))

        assert audit_logger.history[-1].event_type == AuditEventType.PROFILE_UNLOCK_FAILED
        assert tracker.current_profile == "hemank"

        run(tracker.switch_profile("partner", pin="4321"))
        run(tracker.switch_profile("hemank"))
        # Unlocked for the rest of the process
        run(tracker.switch_profile("partner"))
        assert tracker.current_profile == "partner"

    def test_unknown_profile(self, tracker):
        with pytest.raises(ProfileError):
            run(tracker.switch_profile("stranger"))

    def test_no_active_session(self, tracker):
        with pytest.raises(ProfileError):
            tracker.session

    def test_current_profile_is_persisted(self, tracker, local_store):
        run(tracker.switch_profile("partner", pin="4321"))
        assert local_store.get(CURRENT_PROFILE_KEY) == "partner"
        assert tracker.registry.current == "partner"

    def test_open_default_uses_stored_profile(self, tracker, local_store):
        local_store.set(CURRENT_PROFILE_KEY, "partner")
        session = run(tracker.open_default(pin="4321"))
        assert session.profile == "partner"

    def test_open_default_falls_back_to_first_profile(self, tracker):
        assert run(tracker.open_default()).profile == "hemank"

    def test_migrations_run_on_open(self, local_store, sync_engine, validator):
        from finance_tracker.orchestrator import FinanceTracker, ProfileRegistry

        local_store.write_json("transactions_hemank", [{
            "id": 1, "type": "expense", "amount": 850.0, "category": "Appartement",
            "description": "Loyer", "date": "2024-01-03",
        }])
        tracker = FinanceTracker(
            registry=ProfileRegistry(("hemank",), local_store),
            sync_engine=sync_engine,
            validator=validator,
            migrations=[rename_category_migration("renameAppartement", "Appartement", "Logement")],
        )
        session = run(tracker.switch_profile("hemank"))
        assert session.categories() == {"Logement"}
        assert local_store.read_json("migrated_renameAppartement_hemank") is True


class TestSnapshotTransfer:
    """Tests for JSON export and import."""

    def _populated(self, tracker):
        session = run(tracker.switch_profile("hemank"))
        run(session.add_transaction(SALARY))
        run(session.add_transaction(RENT))
        run(session.archive_month("2024-01"))
        run(session.set_budget("Courses", "300"))
        run(session.add_custom_field("Employeur"))
        run(session.set_custom_field_value("Employeur", "ACME"))
        return session

    def test_export_import_round_trip(self, tracker):
        source = self._populated(tracker)
        before = state_of(source)
        text = snapshot_to_json(source.export_snapshot())

        target = run(tracker.switch_profile("partner", pin="4321"))
        snapshot = run(tracker.import_snapshot(text))

        assert snapshot.profile == "hemank"
        assert target.profile == "partner"
        assert state_of(target) == before

    def test_import_is_persisted(self, tracker, local_store):
        text = snapshot_to_json(self._populated(tracker).export_snapshot())
        run(tracker.switch_profile("partner", pin="4321"))
        run(tracker.import_snapshot(text))

        assert len(local_store.read_json("transactions_partner")) == 2
        assert local_store.read_json("archived_partner")[0]["key"] == "2024-01"
        assert local_store.read_json("categoryBudgets_partner") == {"Courses": 300.0}

    def test_new_ids_stay_unique_after_import(self, tracker):
        text = snapshot_to_json(self._populated(tracker).export_snapshot())
        target = run(tracker.switch_profile("partner", pin="4321"))
        run(target.import_snapshot(text))
        imported_ids = {t.id for t in target.ledger}

        added = run(target.add_transaction(groceries("5")))
        assert added.id not in imported_ids
        assert added.id > max(imported_ids)

    @pytest.mark.parametrize("payload", [
        "not json at all",
        "[]",
        {"transactions": [], "archivedMonths": []},
        {"profile": "", "transactions": [], "archivedMonths": []},
        {"profile": "hemank", "transactions": {}, "archivedMonths": []},
        {"profile": "hemank", "transactions": [], "archivedMonths": "nope"},
        {"profile": "hemank", "transactions": [{"id": 1, "type": "expense", "amount": -5}], "archivedMonths": []},
        {"profile": "hemank", "transactions": [], "archivedMonths": [], "categoryBudgets": {"Courses": 0}},
        {"profile": "hemank", "transactions": [], "archivedMonths": [], "categoryBudgets": {"c" * 60: 10}},
    ])
    def test_invalid_import_changes_nothing(self, tracker, local_store, payload):
        session = self._populated(tracker)
        before = state_of(session)
        stored_before = local_store.get("transactions_hemank")

        with pytest.raises(InvalidFormatError):
            run(session.import_snapshot(payload))

        assert state_of(session) == before
        assert local_store.get("transactions_hemank") == stored_before

    def test_rejected_import_is_audited(self, tracker, audit_logger):
        session = run(tracker.switch_profile("hemank"))
        with pytest.raises(InvalidFormatError):
            run(session.import_snapshot("{}"))
        assert audit_logger.history[-1].event_type == AuditEventType.SNAPSHOT_REJECTED


class TestFactory:
    """Tests for create_app_components."""

    def test_local_only(self):
        local = MemoryLocalStore()
        tracker = create_app_components(use_remote=False, local=local)
        assert not tracker.sync_engine.remote_configured

        session = run(tracker.switch_profile(tracker.registry.profiles[0]))
        run(session.add_transaction({
            "type": "expense", "amount": "9.99", "category": "Courses",
            "description": "Pain", "date": "2024-01-02",
        }))
        assert tracker.sync_status() == SyncState.LOCAL

    def test_with_remote_override(self):
        remote = InMemoryDocumentStore()
        tracker = create_app_components(local=MemoryLocalStore(), remote=remote)
        assert tracker.sync_engine.remote_configured


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
