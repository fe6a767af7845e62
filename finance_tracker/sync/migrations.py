"""
One-Shot Data Migrations

A migration transforms raw persisted JSON for some collections of a profile.
The Sync Engine runs it at most once per profile, gated by the local marker
`migrated_{name}_{profile}`.

Transforms receive and return plain JSON values, before any model parsing,
so they also work on data written by older versions.
"""

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class Migration:
    """A named, idempotent transform over one or more collections."""

    name: str
    collections: tuple[str, ...]
    transform: Callable[[str, Any], Any]

    def marker_key(self, profile: str) -> str:
        return f"migrated_{self.name}_{profile}"


def rename_category_migration(name: str, old: str, new: str) -> Migration:
    """
    Rename a category value in current and archived transactions.

    Archive summaries are totals only, so they are left untouched.
    """

    def rename(item: Any) -> Any:
        if isinstance(item, dict) and item.get("category") == old:
            return {**item, "category": new}
        return item

    def transform(collection: str, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        if collection == "transactions":
            return [rename(item) for item in value]
        if collection == "archives":
            return [
                {**archive, "transactions": [rename(t) for t in archive.get("transactions", [])]}
                if isinstance(archive, dict)
                else archive
                for archive in value
            ]
        return value

    return Migration(
        name=name,
        collections=("transactions", "archives"),
        transform=transform,
    )
