"""
Budget Tracker

Per-category spending ceilings for one profile.

Spent amounts are always computed live from the ledger (expense
transactions of the category) and never stored. Budgets survive ledger
clears: they are category policy, not monthly data.
"""

from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

import structlog

from finance_tracker.models.transaction import (
    MAX_CATEGORY_LENGTH,
    BudgetBand,
    BudgetStatus,
    Transaction,
    TransactionType,
)
from finance_tracker.validation import (
    ValidationError,
    check_amount_range,
    check_text,
    parse_amount,
)


logger = structlog.get_logger(__name__)


def _category_name(category: object) -> object:
    """Budget categories are keyed by their trimmed name."""
    return category.strip() if isinstance(category, str) else category


def compute_status(
    category: Optional[str],
    budget: Decimal,
    spent: Decimal,
) -> BudgetStatus:
    """
    Budget arithmetic.

    remaining = budget - spent (negative when over budget);
    percent_used = spent / budget * 100, or 0 when budget is 0.
    """
    percent_used = spent / budget * 100 if budget > 0 else Decimal("0")
    return BudgetStatus(
        category=category,
        budget=budget,
        spent=spent,
        remaining=budget - spent,
        percent_used=percent_used,
        band=BudgetBand.for_percent(percent_used),
    )


class BudgetTracker:
    """Category -> ceiling mapping with spent-versus-budget views."""

    def __init__(self, budgets: Optional[Mapping[str, Decimal]] = None):
        self._budgets: dict[str, Decimal] = {}
        for category, amount in (budgets or {}).items():
            self.set_budget(category, amount)

    def __len__(self) -> int:
        return len(self._budgets)

    def __contains__(self, category: object) -> bool:
        return _category_name(category) in self._budgets

    @property
    def budgets(self) -> dict[str, Decimal]:
        return dict(self._budgets)

    def get(self, category: str) -> Optional[Decimal]:
        return self._budgets.get(_category_name(category))

    def set_budget(self, category: str, amount: Any) -> Decimal:
        """
        Set or replace the ceiling for a category.

        Raises:
            ValidationError: If the category is blank/too long or amount <= 0
        """
        name = check_text(category, "category", "Category", MAX_CATEGORY_LENGTH)
        ceiling = check_amount_range(parse_amount(amount))
        self._budgets[name] = ceiling
        return ceiling

    def remove_budget(self, category: str) -> bool:
        return self._budgets.pop(_category_name(category), None) is not None

    @staticmethod
    def spent(category: str, ledger: Iterable[Transaction]) -> Decimal:
        """Sum of expense transactions in `category`."""
        return sum(
            (
                t.amount for t in ledger
                if t.type == TransactionType.EXPENSE and t.category == category
            ),
            Decimal("0"),
        )

    def status(self, category: str, ledger: Iterable[Transaction]) -> Optional[BudgetStatus]:
        """Status for a budgeted category, or None if it has no budget."""
        category = _category_name(category)
        budget = self._budgets.get(category)
        if budget is None:
            return None
        return compute_status(category, budget, self.spent(category, ledger))

    def statuses(self, ledger: Iterable[Transaction]) -> list[BudgetStatus]:
        """Status of every budgeted category, sorted by category name."""
        transactions = tuple(ledger)
        return [
            compute_status(category, budget, self.spent(category, transactions))
            for category, budget in sorted(self._budgets.items())
        ]

    def total_status(self, ledger: Iterable[Transaction]) -> BudgetStatus:
        """Budget and spent summed independently across budgeted categories."""
        statuses = self.statuses(ledger)
        total_budget = sum((s.budget for s in statuses), Decimal("0"))
        total_spent = sum((s.spent for s in statuses), Decimal("0"))
        return compute_status(None, total_budget, total_spent)

    def to_storage(self) -> dict[str, float]:
        return {category: float(amount) for category, amount in self._budgets.items()}

    @classmethod
    def from_storage(cls, data: Any) -> "BudgetTracker":
        """Rebuild from the persisted JSON object, skipping invalid entries."""
        tracker = cls()
        if not isinstance(data, dict):
            logger.warning("budget_data_not_an_object", data_type=type(data).__name__)
            return tracker

        for category, amount in data.items():
            try:
                tracker.set_budget(category, amount)
            except ValidationError as e:
                logger.warning("budget_entry_skipped", category=category, error=e.message)
        return tracker
