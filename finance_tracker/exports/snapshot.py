"""
JSON Snapshot Export / Import

DESIGN DECISION: Import is all-or-nothing. The whole payload is parsed and
validated into an ExportSnapshot BEFORE any profile state is touched; any
problem raises InvalidFormatError and leaves the profile unchanged.
"""

import json
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from finance_tracker.ledger import ArchiveStore, BudgetTracker, CustomFieldSet, Ledger
from finance_tracker.models.transaction import ExportSnapshot


class InvalidFormatError(Exception):
    """The import file is not a valid profile export."""
    pass


def build_snapshot(
    profile: str,
    ledger: Ledger,
    archives: ArchiveStore,
    budgets: BudgetTracker,
    custom_fields: CustomFieldSet,
    exported_at: Optional[datetime] = None,
) -> ExportSnapshot:
    """Capture a profile's full state as an ExportSnapshot."""
    return ExportSnapshot(
        profile=profile,
        export_date=exported_at or datetime.now(timezone.utc),
        transactions=list(ledger.transactions),
        archived_months=archives.list(),
        custom_fields=custom_fields.fields,
        custom_field_values=custom_fields.values,
        category_budgets=budgets.budgets,
    )


def snapshot_to_json(snapshot: ExportSnapshot, indent: Optional[int] = 2) -> str:
    return json.dumps(snapshot.to_storage(), ensure_ascii=False, indent=indent)


def _first_error(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def parse_snapshot(data: Union[str, bytes, Mapping[str, Any]]) -> ExportSnapshot:
    """
    Validate an export payload.

    Args:
        data: JSON text or an already-decoded mapping

    Raises:
        InvalidFormatError: If anything about the payload is wrong
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise InvalidFormatError(f"File is not valid JSON: {e}")

    if not isinstance(data, Mapping):
        raise InvalidFormatError("Export must be a JSON object")

    profile = data.get("profile")
    if not isinstance(profile, str) or not profile.strip():
        raise InvalidFormatError("'profile' must be a non-empty string")

    for field in ("transactions", "archivedMonths"):
        if not isinstance(data.get(field), list):
            raise InvalidFormatError(f"'{field}' must be an array")

    try:
        snapshot = ExportSnapshot.model_validate(dict(data))
    except PydanticValidationError as e:
        raise InvalidFormatError(f"Invalid export data ({_first_error(e)})")

    transaction_ids = [t.id for t in snapshot.transactions]
    if len(transaction_ids) != len(set(transaction_ids)):
        raise InvalidFormatError("Export contains duplicate transaction ids")

    archive_keys = [a.key for a in snapshot.archived_months]
    if len(archive_keys) != len(set(archive_keys)):
        raise InvalidFormatError("Export contains duplicate archive months")

    field_names = [f.name for f in snapshot.custom_fields]
    if len(field_names) != len(set(field_names)):
        raise InvalidFormatError("Export contains duplicate custom field names")

    return snapshot
