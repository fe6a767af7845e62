"""
Transaction Input Validation

DESIGN DECISION: Raw input from the UI is validated in one place before
anything touches the ledger. A rejection is a structured ValidationError
(kind + human message) and NOTHING is mutated when one is raised.

Checks, in order:
- type is income or expense
- amount parses, is finite, and lies in (0, 999 999 999] with at most
  two decimal places
- category is non-empty, at most 50 characters; the "custom" expense
  sentinel is replaced by the user's own text; income uses a fixed set
- description is non-empty, at most 200 characters
- date is present and a valid calendar date

IMPORTANT: Validation NEVER silently fixes issues beyond trimming whitespace.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from finance_tracker.config import get_settings
from finance_tracker.models.transaction import (
    AMOUNT_DECIMAL_PLACES,
    MAX_AMOUNT,
    MAX_CATEGORY_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    Transaction,
    TransactionType,
)


CUSTOM_CATEGORY = "custom"
CENT = Decimal(1).scaleb(-AMOUNT_DECIMAL_PLACES)


class ValidationError(Exception):
    """
    Structured rejection of user input.

    Attributes:
        kind: Machine-readable reason (e.g. 'amount_out_of_range')
        message: Human-readable explanation to show the user
        field: The offending input field, when there is one
    """

    def __init__(self, kind: str, message: str, field: Optional[str] = None):
        self.kind = kind
        self.message = message
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"kind": self.kind, "message": self.message, "field": self.field}


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """
    Parse a monetary amount from a string or number.

    Raises:
        ValidationError: If missing, unparsable, or not finite
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("missing_field", "Amount is required", field)
    if isinstance(value, bool):
        raise ValidationError("invalid_type", "Amount must be a number", field)

    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("invalid_type", f"'{value}' is not a valid amount", field)

    if not amount.is_finite():
        raise ValidationError("invalid_type", "Amount must be a finite number", field)
    return amount


def check_amount_range(amount: Decimal, field: str = "amount") -> Decimal:
    """Ensure 0 < amount <= MAX_AMOUNT with at most cent precision."""
    if amount <= 0:
        raise ValidationError(
            "amount_out_of_range",
            "Amount must be greater than zero",
            field,
        )
    if amount > MAX_AMOUNT:
        raise ValidationError(
            "amount_out_of_range",
            f"Amount cannot exceed {MAX_AMOUNT:,}",
            field,
        )
    if amount != amount.quantize(CENT):
        raise ValidationError(
            "invalid_precision",
            f"Amount cannot have more than {AMOUNT_DECIMAL_PLACES} decimal places",
            field,
        )
    return amount


def check_text(value: Any, field: str, label: str, max_length: int) -> str:
    """Trim a required text input and enforce its length bound."""
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError("missing_field", f"{label} is required", field)
    if len(text) > max_length:
        raise ValidationError(
            "field_too_long",
            f"{label} cannot exceed {max_length} characters ({len(text)} given)",
            field,
        )
    return text


def parse_date(value: Any, field: str = "date") -> date:
    """Accept a date, a datetime, or an ISO YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("missing_field", "Date is required", field)
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(
            "invalid_date",
            f"'{value}' is not a valid date (expected YYYY-MM-DD)",
            field,
        )


class TransactionValidator:
    """
    Turns raw form input into a validated Transaction.

    Income categories come from a fixed set; expense categories are free-form.
    """

    def __init__(self, income_categories: Optional[Iterable[str]] = None):
        """
        Initialize validator.

        Args:
            income_categories: Allowed income categories.
                               Defaults to the configured set.
        """
        if income_categories is None:
            income_categories = get_settings().app.income_categories_list
        self._income_categories = tuple(income_categories)

    @property
    def income_categories(self) -> tuple[str, ...]:
        return self._income_categories

    def _resolve_category(
        self,
        transaction_type: TransactionType,
        category: Any,
        custom_category: Any,
    ) -> str:
        if (
            transaction_type == TransactionType.EXPENSE
            and isinstance(category, str)
            and category.strip() == CUSTOM_CATEGORY
        ):
            return check_text(
                custom_category, "custom_category", "Custom category", MAX_CATEGORY_LENGTH
            )

        resolved = check_text(category, "category", "Category", MAX_CATEGORY_LENGTH)
        if (
            transaction_type == TransactionType.INCOME
            and self._income_categories
            and resolved not in self._income_categories
        ):
            raise ValidationError(
                "invalid_category",
                f"'{resolved}' is not an income category "
                f"(expected one of: {', '.join(self._income_categories)})",
                "category",
            )
        return resolved

    def build(self, raw: Mapping[str, Any], transaction_id: int) -> Transaction:
        """
        Validate raw input and build a Transaction with the given id.

        Args:
            raw: Form input with keys type, amount, category, description,
                 date, and optionally custom_category, imported, bankAccount
            transaction_id: Id assigned by the ledger

        Raises:
            ValidationError: On the first failing check
        """
        try:
            transaction_type = TransactionType(raw.get("type"))
        except ValueError:
            raise ValidationError(
                "invalid_type",
                "Transaction type must be 'income' or 'expense'",
                "type",
            )

        amount = check_amount_range(parse_amount(raw.get("amount")))
        category = self._resolve_category(
            transaction_type,
            raw.get("category"),
            raw.get("custom_category"),
        )
        description = check_text(
            raw.get("description"), "description", "Description", MAX_DESCRIPTION_LENGTH
        )
        transaction_date = parse_date(raw.get("date"))

        try:
            return Transaction(
                id=transaction_id,
                type=transaction_type,
                amount=amount,
                category=category,
                description=description,
                date=transaction_date,
                imported=raw.get("imported"),
                bank_account=raw.get("bankAccount", raw.get("bank_account")),
            )
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ValidationError("invalid_type", first.get("msg", str(e)), field)
