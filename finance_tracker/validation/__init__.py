"""Input validation package."""

from finance_tracker.validation.validator import (
    CUSTOM_CATEGORY,
    TransactionValidator,
    ValidationError,
    check_amount_range,
    check_text,
    parse_amount,
    parse_date,
)

__all__ = [
    "CUSTOM_CATEGORY",
    "TransactionValidator",
    "ValidationError",
    "check_amount_range",
    "check_text",
    "parse_amount",
    "parse_date",
]
