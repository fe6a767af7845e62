"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the operations
the UI calls into:
1. Ledger: add / remove / clear transactions, summaries
2. Archives: archive month, start new month, remove archive
3. Budgets: set / remove, status views
4. Profiles: switch (flush old, load new), PIN convenience lock
5. Data transfer: JSON export / import, simulated bank import

DESIGN DECISION: All profile state lives in one ProfileSession object,
built on profile switch. There is no module-level state; exactly one
session is active at a time, and the previous one is flushed before the
next one is loaded so data never bleeds across profiles.

Every mutation updates memory, then awaits the Sync Engine. The local
write has completed by the time the operation returns; remote failures
are absorbed by the engine and never fail the operation.
"""

from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import structlog

from finance_tracker.audit import AuditLogger, configure_logging
from finance_tracker.config import Settings, get_settings
from finance_tracker.exports import InvalidFormatError, build_snapshot, parse_snapshot
from finance_tracker.ledger import (
    ArchiveOrder,
    ArchiveStore,
    BudgetTracker,
    CustomFieldSet,
    IdGenerator,
    Ledger,
    snapshot_key_for,
)
from finance_tracker.models.transaction import (
    Archive,
    BudgetStatus,
    CustomField,
    CustomFieldType,
    ExportSnapshot,
    LedgerSummary,
    Transaction,
    TransactionFilter,
)
from finance_tracker.services.bank_import import BankAccount, simulate_bank_transactions
from finance_tracker.services.storage import (
    FileLocalStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    LocalStore,
    RemoteStore,
)
from finance_tracker.sync import DataSource, Migration, SyncEngine, SyncState
from finance_tracker.validation import TransactionValidator, ValidationError


logger = structlog.get_logger(__name__)

CURRENT_PROFILE_KEY = "currentProfile"


class ProfileError(Exception):
    """Unknown profile or no active profile."""
    pass


class ProfileLockedError(ProfileError):
    """The profile's PIN has not been entered (convenience lock only)."""
    pass


class ProfileSession:
    """
    All data of one profile, plus the operations on it.

    Build with `await ProfileSession.open(...)` to load persisted state.
    """

    def __init__(
        self,
        profile: str,
        sync_engine: SyncEngine,
        ledger: Optional[Ledger] = None,
        archives: Optional[ArchiveStore] = None,
        budgets: Optional[BudgetTracker] = None,
        custom_fields: Optional[CustomFieldSet] = None,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        month_key_timezone: tzinfo = timezone.utc,
    ):
        self._profile = profile
        self._sync = sync_engine
        self._ledger = ledger if ledger is not None else Ledger()
        self._archives = archives if archives is not None else ArchiveStore()
        self._budgets = budgets if budgets is not None else BudgetTracker()
        self._custom_fields = custom_fields if custom_fields is not None else CustomFieldSet()
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger
        self._timezone = month_key_timezone

    @classmethod
    async def open(
        cls,
        profile: str,
        sync_engine: SyncEngine,
        migrations: Iterable[Migration] = (),
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        month_key_timezone: tzinfo = timezone.utc,
        archive_clock: Optional[Callable[[], datetime]] = None,
        id_clock: Optional[Callable[[], int]] = None,
    ) -> "ProfileSession":
        """
        Run pending migrations for the profile, then load every collection.
        """
        for migration in migrations:
            await sync_engine.run_migration(profile, migration)

        transactions = await sync_engine.load("transactions", profile)
        archived = await sync_engine.load("archives", profile)
        # Remote documents carry no insertion order; list them by calendar month
        order = (
            ArchiveOrder.CALENDAR
            if sync_engine.last_source("archives") == DataSource.REMOTE
            else ArchiveOrder.ARCHIVED_DATE
        )
        budgets = await sync_engine.load("budgets", profile)
        fields = await sync_engine.load("custom_fields", profile)
        values = await sync_engine.load("custom_field_values", profile)

        return cls(
            profile=profile,
            sync_engine=sync_engine,
            ledger=Ledger.from_storage(transactions, IdGenerator(clock=id_clock)),
            archives=ArchiveStore.from_storage(archived, order=order, clock=archive_clock),
            budgets=BudgetTracker.from_storage(budgets),
            custom_fields=CustomFieldSet.from_storage(fields, values),
            validator=validator,
            audit_logger=audit_logger,
            month_key_timezone=month_key_timezone,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def profile(self) -> str:
        return self._profile

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def archive_store(self) -> ArchiveStore:
        return self._archives

    @property
    def budget_tracker(self) -> BudgetTracker:
        return self._budgets

    @property
    def custom_fields(self) -> CustomFieldSet:
        return self._custom_fields

    @property
    def sync_engine(self) -> SyncEngine:
        return self._sync

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _save_transactions(self) -> None:
        await self._sync.save("transactions", self._profile, self._ledger.to_storage())

    async def _save_archives(self) -> None:
        await self._sync.save("archives", self._profile, self._archives.to_storage())

    async def _save_budgets(self) -> None:
        await self._sync.save("budgets", self._profile, self._budgets.to_storage())

    async def _save_custom_fields(self) -> None:
        fields, values = self._custom_fields.to_storage()
        await self._sync.save("custom_fields", self._profile, fields)
        await self._sync.save("custom_field_values", self._profile, values)

    async def flush(self) -> None:
        """Save every collection of this profile."""
        await self._save_transactions()
        await self._save_archives()
        await self._save_budgets()
        await self._save_custom_fields()

    # ------------------------------------------------------------------
    # Ledger operations
    # ------------------------------------------------------------------

    async def add_transaction(self, raw: Mapping[str, Any]) -> Transaction:
        """
        Validate form input, append it to the ledger, and persist.

        Raises:
            ValidationError: Input rejected; the ledger is unchanged
        """
        try:
            transaction = self._validator.build(raw, self._ledger.next_id())
            self._ledger.add(transaction)
        except ValidationError as e:
            if self._audit_logger:
                self._audit_logger.log_transaction_rejected(self._profile, e.kind, e.message)
            raise

        await self._save_transactions()
        if self._audit_logger:
            self._audit_logger.log_transaction_added(
                profile=self._profile,
                transaction_id=transaction.id,
                transaction_type=transaction.type.value,
                amount=str(transaction.amount),
                category=transaction.category,
            )
        return transaction

    async def remove_transaction(self, transaction_id: int) -> bool:
        """Delete a transaction by id. Returns False (and saves nothing) if absent."""
        if not self._ledger.remove(transaction_id):
            return False
        await self._save_transactions()
        if self._audit_logger:
            self._audit_logger.log_transaction_removed(self._profile, transaction_id)
        return True

    async def clear_transactions(self) -> int:
        """Empty the ledger. Returns how many transactions were removed."""
        removed = len(self._ledger)
        self._ledger.clear()
        await self._save_transactions()
        if self._audit_logger:
            self._audit_logger.log_ledger_cleared(self._profile, removed)
        return removed

    async def import_bank_transactions(
        self,
        account: BankAccount,
        count: int = 5,
        start: Optional[date] = None,
        seed: Optional[int] = None,
    ) -> list[Transaction]:
        """
        Add simulated bank transactions for a linked account.

        All rows are validated before any is added.
        """
        rows = simulate_bank_transactions(
            account,
            count=count,
            start=start,
            seed=seed,
            income_categories=self._validator.income_categories,
        )
        transactions = [self._validator.build(row, self._ledger.next_id()) for row in rows]
        for transaction in transactions:
            self._ledger.add(transaction)
        await self._save_transactions()
        for transaction in transactions:
            if self._audit_logger:
                self._audit_logger.log_transaction_added(
                    profile=self._profile,
                    transaction_id=transaction.id,
                    transaction_type=transaction.type.value,
                    amount=str(transaction.amount),
                    category=transaction.category,
                )
        return transactions

    def summary(self, transaction_filter: Optional[TransactionFilter] = None) -> LedgerSummary:
        return self._ledger.aggregate(transaction_filter)

    def categories(self) -> set[str]:
        return self._ledger.categories_in_use()

    # ------------------------------------------------------------------
    # Archive operations
    # ------------------------------------------------------------------

    def month_key(self, value=None) -> str:
        """YYYY-MM key for a date, or for now in the configured timezone."""
        return snapshot_key_for(value, self._timezone)

    async def archive_month(self, key: Optional[str] = None, force: bool = False) -> Archive:
        """
        Snapshot the current ledger under `key` (default: current month).

        The ledger itself is not cleared.

        Raises:
            DuplicateKeyError: The month is already archived and force is False
        """
        key = key or self.month_key()
        replaced = self._archives.exists(key)
        archive = self._archives.upsert(self._ledger.transactions, key, force=force)
        await self._save_archives()
        if self._audit_logger:
            self._audit_logger.log_archive_created(
                self._profile, key, archive.summary.transaction_count, replaced=replaced
            )
        return archive

    async def start_new_month(self, key: Optional[str] = None, force: bool = False) -> Archive:
        """Archive the current ledger, then clear it."""
        archive = await self.archive_month(key, force=force)
        await self.clear_transactions()
        return archive

    async def remove_archive(self, key: str) -> bool:
        if not self._archives.remove(key):
            return False
        await self._save_archives()
        if self._audit_logger:
            self._audit_logger.log_archive_removed(self._profile, key)
        return True

    def archives(self) -> list[Archive]:
        return self._archives.list()

    # ------------------------------------------------------------------
    # Budget operations
    # ------------------------------------------------------------------

    async def set_budget(self, category: str, amount: Any) -> Decimal:
        ceiling = self._budgets.set_budget(category, amount)
        await self._save_budgets()
        if self._audit_logger:
            self._audit_logger.log_budget_set(self._profile, category.strip(), str(ceiling))
        return ceiling

    async def remove_budget(self, category: str) -> bool:
        if not self._budgets.remove_budget(category):
            return False
        await self._save_budgets()
        if self._audit_logger:
            self._audit_logger.log_budget_removed(self._profile, category.strip())
        return True

    def budget_status(self, category: str) -> Optional[BudgetStatus]:
        return self._budgets.status(category, self._ledger)

    def budget_overview(self) -> tuple[list[BudgetStatus], BudgetStatus]:
        """Per-category statuses and the combined total."""
        return self._budgets.statuses(self._ledger), self._budgets.total_status(self._ledger)

    # ------------------------------------------------------------------
    # Custom fields
    # ------------------------------------------------------------------

    async def add_custom_field(
        self,
        name: str,
        field_type: CustomFieldType = CustomFieldType.TEXT,
    ) -> CustomField:
        field = self._custom_fields.add_field(name, field_type)
        await self._save_custom_fields()
        return field

    async def remove_custom_field(self, name: str) -> bool:
        if not self._custom_fields.remove_field(name):
            return False
        await self._save_custom_fields()
        return True

    async def set_custom_field_value(self, name: str, value: Any) -> None:
        self._custom_fields.set_value(name, value)
        await self._sync.save(
            "custom_field_values", self._profile, self._custom_fields.values
        )

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_snapshot(self, exported_at: Optional[datetime] = None) -> ExportSnapshot:
        snapshot = build_snapshot(
            profile=self._profile,
            ledger=self._ledger,
            archives=self._archives,
            budgets=self._budgets,
            custom_fields=self._custom_fields,
            exported_at=exported_at,
        )
        if self._audit_logger:
            self._audit_logger.log_snapshot_exported(
                self._profile, len(snapshot.transactions), len(snapshot.archived_months)
            )
        return snapshot

    async def import_snapshot(self, data: Union[str, bytes, Mapping[str, Any]]) -> ExportSnapshot:
        """
        Replace this profile's data with an exported snapshot.

        The snapshot is imported into THIS profile even if it was exported
        from another one.

        Raises:
            InvalidFormatError: Nothing was changed
        """
        try:
            snapshot = parse_snapshot(data)
            ledger = Ledger(
                snapshot.transactions,
                IdGenerator(last_id=self._ledger.next_id()),
            )
            archives = ArchiveStore(snapshot.archived_months, order=ArchiveOrder.ARCHIVED_DATE)
            budgets = BudgetTracker(snapshot.category_budgets)
            custom_fields = CustomFieldSet(snapshot.custom_fields, snapshot.custom_field_values)
        except ValidationError as e:
            error = InvalidFormatError(f"Invalid export data ({e.message})")
            if self._audit_logger:
                self._audit_logger.log_snapshot_rejected(self._profile, str(error))
            raise error from e
        except InvalidFormatError as e:
            if self._audit_logger:
                self._audit_logger.log_snapshot_rejected(self._profile, str(e))
            raise

        if snapshot.profile != self._profile:
            logger.info(
                "snapshot_profile_mismatch",
                target=self._profile,
                source=snapshot.profile,
            )

        self._ledger = ledger
        self._archives = archives
        self._budgets = budgets
        self._custom_fields = custom_fields
        await self.flush()

        if self._audit_logger:
            self._audit_logger.log_snapshot_imported(
                profile=self._profile,
                source_profile=snapshot.profile,
                transaction_count=len(snapshot.transactions),
                archive_count=len(snapshot.archived_months),
            )
        return snapshot


class ProfileRegistry:
    """
    Known profiles, their optional PINs, and the persisted current profile.

    The PIN is a convenience lock against casual switching, NOT an
    authentication mechanism.
    """

    def __init__(
        self,
        profiles: Iterable[str],
        local: LocalStore,
        pins: Optional[Mapping[str, str]] = None,
    ):
        self._profiles = tuple(profiles)
        if not self._profiles:
            raise ProfileError("At least one profile must be configured")
        self._local = local
        self._pins = dict(pins or {})
        self._unlocked: set[str] = set()

    @property
    def profiles(self) -> tuple[str, ...]:
        return self._profiles

    def ensure_known(self, profile: str) -> None:
        if profile not in self._profiles:
            raise ProfileError(f"Unknown profile: {profile}")

    def requires_pin(self, profile: str) -> bool:
        return profile in self._pins

    def is_locked(self, profile: str) -> bool:
        return self.requires_pin(profile) and profile not in self._unlocked

    def unlock(self, profile: str, pin: str) -> bool:
        self.ensure_known(profile)
        if not self.requires_pin(profile) or self._pins[profile] == pin:
            self._unlocked.add(profile)
            return True
        return False

    def lock(self, profile: str) -> None:
        self._unlocked.discard(profile)

    @property
    def current(self) -> Optional[str]:
        profile = self._local.get(CURRENT_PROFILE_KEY)
        return profile if profile in self._profiles else None

    def set_current(self, profile: str) -> None:
        self.ensure_known(profile)
        self._local.set(CURRENT_PROFILE_KEY, profile)


class FinanceTracker:
    """
    Application facade: owns the profile registry and the single active
    ProfileSession.
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        sync_engine: SyncEngine,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        migrations: Iterable[Migration] = (),
        month_key_timezone: tzinfo = timezone.utc,
        default_profile: Optional[str] = None,
    ):
        self._registry = registry
        self._sync = sync_engine
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger
        self._migrations = tuple(migrations)
        self._timezone = month_key_timezone
        self._default_profile = default_profile
        self._session: Optional[ProfileSession] = None

    @property
    def registry(self) -> ProfileRegistry:
        return self._registry

    @property
    def sync_engine(self) -> SyncEngine:
        return self._sync

    @property
    def audit_logger(self) -> Optional[AuditLogger]:
        return self._audit_logger

    @property
    def session(self) -> ProfileSession:
        if self._session is None:
            raise ProfileError("No active profile")
        return self._session

    @property
    def current_profile(self) -> Optional[str]:
        return self._session.profile if self._session else None

    def sync_status(self) -> SyncState:
        return self._sync.overall_status()

    async def switch_profile(self, profile: str, pin: Optional[str] = None) -> ProfileSession:
        """
        Make `profile` the active one.

        The current session is flushed before the new profile is loaded.

        Raises:
            ProfileError: Unknown profile
            ProfileLockedError: PIN required and missing or wrong
        """
        self._registry.ensure_known(profile)
        if self._registry.is_locked(profile):
            if pin is None or not self._registry.unlock(profile, pin):
                if pin is not None and self._audit_logger:
                    self._audit_logger.log_profile_unlock_failed(profile)
                raise ProfileLockedError(f"Profile {profile} is locked")

        previous = self.current_profile
        if self._session is not None:
            await self._session.flush()
            self._session = None

        self._session = await ProfileSession.open(
            profile,
            self._sync,
            migrations=self._migrations,
            validator=self._validator,
            audit_logger=self._audit_logger,
            month_key_timezone=self._timezone,
        )
        self._registry.set_current(profile)
        if self._audit_logger:
            self._audit_logger.log_profile_switched(previous, profile)
        return self._session

    async def open_default(self, pin: Optional[str] = None) -> ProfileSession:
        """Open the stored current profile, else the configured default, else the first."""
        profile = (
            self._registry.current
            or (self._default_profile if self._default_profile in self._registry.profiles else None)
            or self._registry.profiles[0]
        )
        return await self.switch_profile(profile, pin)

    def export_snapshot(self) -> ExportSnapshot:
        return self.session.export_snapshot()

    async def import_snapshot(self, data: Union[str, bytes, Mapping[str, Any]]) -> ExportSnapshot:
        return await self.session.import_snapshot(data)


def create_app_components(
    settings: Optional[Settings] = None,
    use_remote: bool = True,
    local: Optional[LocalStore] = None,
    remote: Optional[RemoteStore] = None,
    migrations: Iterable[Migration] = (),
) -> FinanceTracker:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (default: environment)
        use_remote: Whether to mirror to the remote store.
                    Set to False for local-only use.
        local: Local store override (default: files under data_dir)
        remote: Remote store override (default: Google Sheets if configured)
        migrations: One-shot migrations to run when a profile is opened

    Returns:
        A FinanceTracker with no active profile yet
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    audit_logger = AuditLogger()
    local = local or FileLocalStore(app_settings.data_path)

    if not (use_remote and app_settings.remote_sync_enabled):
        remote = None
    elif remote is None:
        try:
            remote = GoogleSheetsDocumentStore(GoogleSheetsClient(settings.google_sheets))
        except Exception as e:
            # Remote not configured - continue local-only
            logger.warning("remote_store_not_configured", error=str(e))
            remote = None

    sync_engine = SyncEngine(local, remote, audit_logger)
    registry = ProfileRegistry(
        app_settings.profiles_list,
        local,
        app_settings.profile_pins_map,
    )
    return FinanceTracker(
        registry=registry,
        sync_engine=sync_engine,
        validator=TransactionValidator(app_settings.income_categories_list),
        audit_logger=audit_logger,
        migrations=migrations,
        month_key_timezone=app_settings.timezone,
        default_profile=app_settings.default_profile,
    )
