"""User-defined fields attached to a profile, with one value each."""

from typing import Any, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from finance_tracker.models.transaction import (
    MAX_FIELD_NAME_LENGTH,
    CustomField,
    CustomFieldType,
)
from finance_tracker.validation import ValidationError, check_text, parse_amount


logger = structlog.get_logger(__name__)

NUMERIC_FIELD_TYPES = (CustomFieldType.NUMBER, CustomFieldType.CURRENCY)


class CustomFieldSet:
    """Field definitions (unique by name) and their current values."""

    def __init__(
        self,
        fields: Optional[list[CustomField]] = None,
        values: Optional[dict[str, Any]] = None,
    ):
        self._fields: dict[str, CustomField] = {}
        self._values: dict[str, Any] = {}
        for field in fields or []:
            self._fields[field.name] = field
        for name, value in (values or {}).items():
            if name in self._fields:
                self._values[name] = value

    def __len__(self) -> int:
        return len(self._fields)

    @property
    def fields(self) -> list[CustomField]:
        return list(self._fields.values())

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    def add_field(self, name: str, field_type: CustomFieldType = CustomFieldType.TEXT) -> CustomField:
        name = check_text(name, "name", "Field name", MAX_FIELD_NAME_LENGTH)
        if name in self._fields:
            raise ValidationError("duplicate_name", f"A field named '{name}' already exists", "name")
        field = CustomField(name=name, type=CustomFieldType(field_type))
        self._fields[name] = field
        return field

    def remove_field(self, name: str) -> bool:
        self._values.pop(name, None)
        return self._fields.pop(name, None) is not None

    def set_value(self, name: str, value: Any) -> None:
        field = self._fields.get(name)
        if field is None:
            raise ValidationError("unknown_field", f"No field named '{name}'", "name")
        if field.type in NUMERIC_FIELD_TYPES and value not in (None, ""):
            parse_amount(value, field="value")
        self._values[name] = value

    def to_storage(self) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        return (
            [field.model_dump(mode="json") for field in self._fields.values()],
            dict(self._values),
        )

    @classmethod
    def from_storage(cls, fields_data: Any, values_data: Any) -> "CustomFieldSet":
        fields = []
        if isinstance(fields_data, list):
            for item in fields_data:
                try:
                    fields.append(CustomField.model_validate(item))
                except (PydanticValidationError, TypeError) as e:
                    logger.warning("custom_field_skipped", error=str(e))
        values = values_data if isinstance(values_data, dict) else {}
        return cls(fields, values)
