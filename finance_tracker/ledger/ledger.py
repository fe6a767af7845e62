"""
Ledger

The authoritative in-memory set of current, unarchived transactions for
one profile. The ledger never persists anything itself; the profile session
hands its contents to the Sync Engine after every mutation.
"""

import time
from decimal import Decimal
from typing import Any, Callable, Iterable, Iterator, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from finance_tracker.models.transaction import (
    LedgerSummary,
    Transaction,
    TransactionFilter,
    TransactionType,
)
from finance_tracker.validation import ValidationError


logger = structlog.get_logger(__name__)


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class IdGenerator:
    """
    Monotonic transaction id source.

    Ids follow the millisecond clock but never repeat or go backwards:
    each id is max(now_ms, last_id + 1).
    """

    def __init__(self, last_id: int = 0, clock: Optional[Callable[[], int]] = None):
        self._last_id = last_id
        self._clock = clock or _wall_clock_ms

    @property
    def last_id(self) -> int:
        return self._last_id

    def observe(self, transaction_id: int) -> None:
        """Record an id that already exists so it is never reissued."""
        if transaction_id > self._last_id:
            self._last_id = transaction_id

    def next_id(self) -> int:
        candidate = max(self._clock(), self._last_id + 1)
        self._last_id = candidate
        return candidate


def summarize(
    transactions: Iterable[Transaction],
    transaction_filter: Optional[TransactionFilter] = None,
) -> LedgerSummary:
    """Single pass totals over a set of transactions."""
    income = Decimal("0")
    expense = Decimal("0")
    count = 0
    for transaction in transactions:
        if transaction_filter is not None and not transaction_filter.matches(transaction):
            continue
        count += 1
        if transaction.type == TransactionType.INCOME:
            income += transaction.amount
        else:
            expense += transaction.amount
    return LedgerSummary(
        income=income,
        expense=expense,
        balance=income - expense,
        count=count,
    )


class Ledger:
    """
    Current transactions of the active profile.

    Insertion order is preserved; nothing is sorted on add.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        id_generator: Optional[IdGenerator] = None,
    ):
        self._transactions: list[Transaction] = []
        self._ids: set[int] = set()
        self._id_generator = id_generator or IdGenerator()
        for transaction in transactions:
            self.add(transaction)

    def __len__(self) -> int:
        return len(self._transactions)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(tuple(self._transactions))

    def __contains__(self, transaction_id: object) -> bool:
        return transaction_id in self._ids

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """Immutable copy of the current contents, in insertion order."""
        return tuple(self._transactions)

    def next_id(self) -> int:
        """Reserve a fresh transaction id."""
        return self._id_generator.next_id()

    def get(self, transaction_id: int) -> Optional[Transaction]:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def add(self, transaction: Transaction) -> None:
        """
        Append a validated transaction.

        Raises:
            ValidationError: If a transaction with the same id already exists
        """
        if transaction.id in self._ids:
            raise ValidationError(
                "duplicate_id",
                f"A transaction with id {transaction.id} already exists",
                "id",
            )
        self._transactions.append(transaction)
        self._ids.add(transaction.id)
        self._id_generator.observe(transaction.id)

    def remove(self, transaction_id: int) -> bool:
        """Remove the transaction with this id. Returns whether one was removed."""
        if transaction_id not in self._ids:
            return False
        self._transactions = [t for t in self._transactions if t.id != transaction_id]
        self._ids.discard(transaction_id)
        return True

    def clear(self) -> None:
        """Empty the ledger. Issued ids stay reserved."""
        self._transactions = []
        self._ids = set()

    def aggregate(self, transaction_filter: Optional[TransactionFilter] = None) -> LedgerSummary:
        """Income, expense, balance and count, optionally filtered."""
        return summarize(self._transactions, transaction_filter)

    def categories_in_use(self) -> set[str]:
        """Distinct categories currently present."""
        return {transaction.category for transaction in self._transactions}

    def filtered(self, transaction_filter: Optional[TransactionFilter] = None) -> list[Transaction]:
        """Matching transactions, newest date first (display order)."""
        matches = [
            t for t in self._transactions
            if transaction_filter is None or transaction_filter.matches(t)
        ]
        matches.sort(key=lambda t: (t.date, t.id), reverse=True)
        return matches

    def to_storage(self) -> list[dict[str, Any]]:
        return [transaction.to_storage() for transaction in self._transactions]

    @classmethod
    def from_storage(
        cls,
        data: Any,
        id_generator: Optional[IdGenerator] = None,
    ) -> "Ledger":
        """
        Rebuild a ledger from its persisted JSON array.

        Entries that fail validation or repeat an id are skipped and logged
        rather than discarding the whole collection.
        """
        ledger = cls(id_generator=id_generator)
        if not isinstance(data, list):
            logger.warning("ledger_data_not_a_list", data_type=type(data).__name__)
            return ledger

        for index, item in enumerate(data):
            try:
                ledger.add(Transaction.model_validate(item))
            except (PydanticValidationError, ValidationError, TypeError) as e:
                logger.warning("ledger_entry_skipped", index=index, error=str(e))
        return ledger
