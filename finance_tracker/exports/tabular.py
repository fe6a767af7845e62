"""
CSV Export of Archives

Each archive is written as a summary block followed by a transaction table
(Date, Type, Category, Description, Amount). The csv module handles quoting:
fields containing the delimiter, quotes or newlines are quoted, with embedded
quotes doubled.
"""

import csv
import io
import re
from decimal import Decimal
from typing import Iterable

from finance_tracker.models.transaction import Archive, TransactionType


TABLE_HEADER = ["Date", "Type", "Category", "Description", "Amount"]

TYPE_LABELS = {
    TransactionType.INCOME: "Income",
    TransactionType.EXPENSE: "Expense",
}

_FILENAME_UNSAFE = re.compile(r"[^A-Za-z0-9_]")


def sanitize_filename(name: str) -> str:
    """Replace every character outside [A-Za-z0-9_] with '_'."""
    return _FILENAME_UNSAFE.sub("_", name)


def archive_filename(archive: Archive, profile: str) -> str:
    return f"{sanitize_filename(f'archive_{archive.month}_{archive.year}_{profile}')}.csv"


def all_archives_filename(profile: str) -> str:
    return f"{sanitize_filename(f'all_archives_{profile}')}.csv"


def _money(amount: Decimal) -> str:
    return f"{amount:.2f}"


def _write_archive(writer, archive: Archive, profile: str) -> None:
    summary = archive.summary
    writer.writerow(["Profile", profile])
    writer.writerow(["Month", f"{archive.month} {archive.year}"])
    writer.writerow(["Archived", archive.archived_date.isoformat()])
    writer.writerow(["Total Income", _money(summary.total_income)])
    writer.writerow(["Total Expense", _money(summary.total_expense)])
    writer.writerow(["Balance", _money(summary.balance)])
    writer.writerow(["Transactions", summary.transaction_count])
    writer.writerow([])
    writer.writerow(TABLE_HEADER)
    for transaction in sorted(archive.transactions, key=lambda t: (t.date, t.id)):
        writer.writerow([
            transaction.date.isoformat(),
            TYPE_LABELS[transaction.type],
            transaction.category,
            transaction.description,
            _money(transaction.amount),
        ])


def archive_to_csv(archive: Archive, profile: str) -> str:
    """CSV text for a single archive."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    _write_archive(writer, archive, profile)
    return buffer.getvalue()


def archives_to_csv(archives: Iterable[Archive], profile: str) -> str:
    """CSV text for several archives: overall totals, then one section per archive."""
    archives = list(archives)
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    total_income = sum((a.summary.total_income for a in archives), Decimal("0"))
    total_expense = sum((a.summary.total_expense for a in archives), Decimal("0"))
    writer.writerow(["Profile", profile])
    writer.writerow(["Archived Months", len(archives)])
    writer.writerow(["Total Income", _money(total_income)])
    writer.writerow(["Total Expense", _money(total_expense)])
    writer.writerow(["Balance", _money(total_income - total_expense)])

    for archive in archives:
        writer.writerow([])
        _write_archive(writer, archive, profile)
    return buffer.getvalue()
