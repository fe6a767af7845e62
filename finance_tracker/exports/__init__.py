"""Export and import of profile data."""

from finance_tracker.exports.snapshot import (
    InvalidFormatError,
    build_snapshot,
    parse_snapshot,
    snapshot_to_json,
)
from finance_tracker.exports.tabular import (
    all_archives_filename,
    archive_filename,
    archive_to_csv,
    archives_to_csv,
    sanitize_filename,
)

__all__ = [
    "InvalidFormatError",
    "all_archives_filename",
    "archive_filename",
    "archive_to_csv",
    "archives_to_csv",
    "build_snapshot",
    "parse_snapshot",
    "sanitize_filename",
    "snapshot_to_json",
]
