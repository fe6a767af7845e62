"""
Archive Store

Month snapshots of a profile's ledger, one per canonical YYYY-MM key.

DESIGN DECISION: An archive is a frozen copy. Its transactions and summary
are computed once from the list handed to `upsert` and never recomputed,
so later ledger edits or category migrations cannot rewrite history.
Overwriting an existing month requires an explicit `force=True`.
"""

import re
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from finance_tracker.ledger.ledger import summarize
from finance_tracker.models.transaction import (
    ARCHIVE_KEY_PATTERN,
    MONTH_NAMES,
    Archive,
    ArchiveSummary,
    Transaction,
)
from finance_tracker.validation import ValidationError


logger = structlog.get_logger(__name__)


class DuplicateKeyError(Exception):
    """An archive already exists for this month; confirmation is required."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"An archive for {key} already exists")


AlreadyExists = DuplicateKeyError


class ArchiveOrder(str, Enum):
    """How `ArchiveStore.list` orders archives."""
    ARCHIVED_DATE = "archived_date"  # most recently archived first
    CALENDAR = "calendar"            # latest (year, month) first


def snapshot_key_for(
    value: Union[date, datetime, None] = None,
    tz: tzinfo = timezone.utc,
) -> str:
    """
    Canonical YYYY-MM key for a date.

    Args:
        value: A calendar date, a datetime, or None for "now"
        tz: Zone in which "now" and aware datetimes are read.
            Naive datetimes are taken as already in this zone.
    """
    if value is None:
        value = datetime.now(tz)
    elif isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(tz)
    return f"{value.year:04d}-{value.month:02d}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_archive(
    transactions: Iterable[Transaction],
    key: str,
    archived_at: datetime,
) -> Archive:
    """
    Freeze a list of transactions into an Archive for `key`.

    Raises:
        ValidationError: If `key` is not a YYYY-MM month key.
    """
    if not isinstance(key, str) or not re.fullmatch(ARCHIVE_KEY_PATTERN, key):
        raise ValidationError(
            "invalid_key", f"Archive key must be YYYY-MM, got {key!r}", field="key"
        )
    frozen = tuple(transactions)
    totals = summarize(frozen)
    year, month = int(key[:4]), int(key[5:7])
    return Archive(
        key=key,
        month=MONTH_NAMES[month - 1],
        year=year,
        archived_date=archived_at,
        transactions=frozen,
        summary=ArchiveSummary(
            total_income=totals.income,
            total_expense=totals.expense,
            balance=totals.balance,
            transaction_count=totals.count,
        ),
    )


class ArchiveStore:
    """Archives of one profile, keyed by YYYY-MM."""

    def __init__(
        self,
        archives: Iterable[Archive] = (),
        order: ArchiveOrder = ArchiveOrder.ARCHIVED_DATE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._archives: dict[str, Archive] = {}
        self.order = order
        self._clock = clock or _utc_now
        for archive in archives:
            self._archives[archive.key] = archive

    def __len__(self) -> int:
        return len(self._archives)

    def __contains__(self, key: object) -> bool:
        return key in self._archives

    def exists(self, key: str) -> bool:
        return key in self._archives

    def get(self, key: str) -> Optional[Archive]:
        return self._archives.get(key)

    def upsert(
        self,
        transactions: Iterable[Transaction],
        key: str,
        force: bool = False,
    ) -> Archive:
        """
        Snapshot `transactions` under `key`.

        Raises:
            DuplicateKeyError: If `key` exists and `force` is False.
                Nothing is changed in that case.
            ValidationError: If `key` is not a YYYY-MM month key.
        """
        if key in self._archives and not force:
            raise DuplicateKeyError(key)
        archive = build_archive(transactions, key, self._clock())
        self._archives[key] = archive
        return archive

    def remove(self, key: str) -> bool:
        return self._archives.pop(key, None) is not None

    def list(self) -> list[Archive]:
        """
        All archives in a deterministic, total order.

        ARCHIVED_DATE: archivedDate descending, then key descending.
        CALENDAR: (year, month) descending, then key descending.
        """
        archives = sorted(self._archives.values(), key=lambda a: a.key, reverse=True)
        if self.order == ArchiveOrder.ARCHIVED_DATE:
            archives.sort(key=lambda a: a.archived_date, reverse=True)
        else:
            archives.sort(key=lambda a: (a.year, a.month_number), reverse=True)
        return archives

    def to_storage(self) -> "list[dict[str, Any]]":
        return [archive.to_storage() for archive in self.list()]

    @classmethod
    def from_storage(
        cls,
        data: Any,
        order: ArchiveOrder = ArchiveOrder.ARCHIVED_DATE,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "ArchiveStore":
        """Rebuild from the persisted JSON array, skipping unreadable entries."""
        store = cls(order=order, clock=clock)
        if not isinstance(data, list):
            logger.warning("archive_data_not_a_list", data_type=type(data).__name__)
            return store

        for index, item in enumerate(data):
            try:
                archive = Archive.model_validate(item)
            except (PydanticValidationError, TypeError) as e:
                logger.warning("archive_entry_skipped", index=index, error=str(e))
                continue
            store._archives[archive.key] = archive
        return store
