"""
Core Data Models for Finance Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety and bounds at runtime
2. Provide clear validation error messages
3. Serialize to the exact JSON layout used by local and remote storage
4. Stay immutable once created (archives are frozen historical records)

DESIGN DECISION: Field names are snake_case in Python and camelCase on disk.
Aliases keep the persisted layout stable (`bankAccount`, `archivedDate`, ...).
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)


# Money is held as Decimal in memory and written as a JSON number.
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]

MAX_AMOUNT = Decimal("999999999")
AMOUNT_DECIMAL_PLACES = 2
MAX_CATEGORY_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 200
MAX_FIELD_NAME_LENGTH = 50

MONTH_NAMES = (
    "Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre",
)

ARCHIVE_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class BudgetBand(str, Enum):
    """
    Display band for budget consumption.

    Bands are a policy constant:
    [0, 60) safe, [60, 80) caution, [80, 100) warning, [100, inf) exceeded.
    """
    SAFE = "safe"
    CAUTION = "caution"
    WARNING = "warning"
    EXCEEDED = "exceeded"

    @classmethod
    def for_percent(cls, percent_used: Decimal) -> "BudgetBand":
        if percent_used >= 100:
            return cls.EXCEEDED
        if percent_used >= 80:
            return cls.WARNING
        if percent_used >= 60:
            return cls.CAUTION
        return cls.SAFE


class CustomFieldType(str, Enum):
    """Supported custom field input types."""
    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    TEXTAREA = "textarea"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense entry in a profile's ledger.

    Transactions are immutable: corrections are a delete followed by an add.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    id: int = Field(
        ...,
        ge=1,
        description="Unique, monotonically increasing id within a profile"
    )
    type: TransactionType
    amount: Annotated[
        Money,
        Field(gt=0, le=MAX_AMOUNT, description="Positive amount")
    ]
    category: str = Field(
        ...,
        min_length=1,
        max_length=MAX_CATEGORY_LENGTH,
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=MAX_DESCRIPTION_LENGTH,
    )
    date: date
    imported: Optional[bool] = Field(
        default=None,
        description="Set for transactions coming from the simulated bank import"
    )
    bank_account: Optional[str] = Field(
        default=None,
        alias="bankAccount",
        description="Linked bank account identifier"
    )

    def to_storage(self) -> dict[str, Any]:
        """Serialize to the persisted JSON layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TransactionFilter(BaseModel):
    """Optional restriction applied to ledger aggregates."""
    model_config = ConfigDict(frozen=True)

    type: Optional[TransactionType] = None
    category: Optional[str] = None

    def matches(self, transaction: Transaction) -> bool:
        if self.type is not None and transaction.type != self.type:
            return False
        if self.category is not None and transaction.category != self.category:
            return False
        return True


class LedgerSummary(BaseModel):
    """Totals over a set of transactions."""
    model_config = ConfigDict(frozen=True)

    income: Money = Decimal("0")
    expense: Money = Decimal("0")
    balance: Money = Decimal("0")
    count: int = Field(default=0, ge=0)


# =============================================================================
# ARCHIVES
# =============================================================================

class ArchiveSummary(BaseModel):
    """
    Frozen totals computed once when an archive is created.

    CRITICAL: Never recomputed, even if archived categories are migrated later.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_income: Money = Field(default=Decimal("0"), alias="totalIncome")
    total_expense: Money = Field(default=Decimal("0"), alias="totalExpense")
    balance: Money = Decimal("0")
    transaction_count: int = Field(default=0, ge=0, alias="transactionCount")


class Archive(BaseModel):
    """A month snapshot of a ledger, keyed by canonical YYYY-MM."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    key: str = Field(
        ...,
        pattern=ARCHIVE_KEY_PATTERN,
        description="Canonical YYYY-MM key, unique within a profile"
    )
    month: str = Field(
        ...,
        description="Display month name derived from key"
    )
    year: int = Field(..., ge=1)
    archived_date: datetime = Field(..., alias="archivedDate")
    transactions: tuple[Transaction, ...] = ()
    summary: ArchiveSummary

    @field_validator('archived_date')
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are read as UTC so archives stay comparable."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode='after')
    def validate_key_matches_year(self) -> 'Archive':
        """The year field must agree with the key."""
        if int(self.key[:4]) != self.year:
            raise ValueError(f"Archive year {self.year} does not match key {self.key}")
        return self

    @property
    def month_number(self) -> int:
        return int(self.key[5:7])

    def to_storage(self) -> dict[str, Any]:
        """Serialize to the persisted JSON layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetStatus(BaseModel):
    """
    Spent-versus-budget for one category, or for all budgeted categories
    when `category` is None.
    """
    model_config = ConfigDict(frozen=True)

    category: Optional[str] = None
    budget: Money
    spent: Money
    remaining: Money
    percent_used: Decimal
    band: BudgetBand

    @property
    def is_over_budget(self) -> bool:
        return self.band == BudgetBand.EXCEEDED


# =============================================================================
# CUSTOM FIELDS
# =============================================================================

class CustomField(BaseModel):
    """A user-defined field attached to a profile."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_FIELD_NAME_LENGTH,
    )
    type: CustomFieldType = CustomFieldType.TEXT


# =============================================================================
# EXPORT SNAPSHOT
# =============================================================================

class ExportSnapshot(BaseModel):
    """
    Full JSON export of one profile.

    Layout: {profile, exportDate, transactions[], archivedMonths[],
    customFields[], customFieldValues{}, categoryBudgets{}}
    """
    model_config = ConfigDict(populate_by_name=True)

    profile: str = Field(..., min_length=1)
    export_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="exportDate",
    )
    transactions: list[Transaction] = Field(default_factory=list)
    archived_months: list[Archive] = Field(
        default_factory=list,
        alias="archivedMonths",
    )
    custom_fields: list[CustomField] = Field(
        default_factory=list,
        alias="customFields",
    )
    custom_field_values: dict[str, Any] = Field(
        default_factory=dict,
        alias="customFieldValues",
    )
    category_budgets: dict[str, Money] = Field(
        default_factory=dict,
        alias="categoryBudgets",
    )

    @field_validator('category_budgets')
    @classmethod
    def validate_budgets_positive(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Budget ceilings must be positive."""
        for category, amount in v.items():
            if amount <= 0:
                raise ValueError(f"Budget for '{category}' must be greater than zero")
        return v

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
