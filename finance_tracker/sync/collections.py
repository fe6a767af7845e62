"""
Persisted Collections

Describes where each profile collection lives locally and remotely, and how
its JSON value maps onto remote documents.

Local keys (one JSON value per key):
    transactions_{profile}        JSON array of transactions
    archived_{profile}            JSON array of archives
    categoryBudgets_{profile}     JSON object category -> amount
    customFields_{profile}        JSON array of field definitions
    customFieldValues_{profile}   JSON object name -> value

Remote documents:
    profiles/{profile}/transactions/{id}
    profiles/{profile}/archived/{key}
    profiles/{profile}/settings/categoryBudgets
    profiles/{profile}/customFields/fields
    profiles/{profile}/customFields/values
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class CollectionSpec:
    """
    One persisted collection.

    Either `id_field` is set (one remote document per item, keyed by that
    field) or `document_id` is set (the whole value is one remote document).
    """

    name: str
    local_prefix: str
    remote_name: str
    empty: Callable[[], Any]
    id_field: Optional[str] = None
    document_id: Optional[str] = None
    wrap_field: Optional[str] = None

    def local_key(self, profile: str) -> str:
        return f"{self.local_prefix}_{profile}"

    def remote_path(self, profile: str) -> str:
        return f"profiles/{profile}/{self.remote_name}"

    @property
    def is_single_document(self) -> bool:
        return self.document_id is not None

    def to_document(self, value: Any) -> dict:
        """Single-document form of a value."""
        if self.wrap_field:
            return {self.wrap_field: value}
        return dict(value)

    def to_documents(self, value: Any) -> dict[str, dict]:
        """Per-item documents keyed by `id_field`."""
        return {str(item[self.id_field]): item for item in value}

    def from_documents(self, docs: dict[str, dict]) -> Optional[Any]:
        """
        Rebuild the collection value from remote documents.

        Returns None when the remote holds nothing for this collection.
        Per-item collections come back sorted by their id field (descending
        for archives so the latest month is first).
        """
        if self.is_single_document:
            doc = docs.get(self.document_id)
            if not doc:
                return None
            if self.wrap_field:
                return doc.get(self.wrap_field) or None
            return doc

        if not docs:
            return None
        items = list(docs.values())
        items.sort(key=lambda item: item.get(self.id_field), reverse=self.name == "archives")
        return items


TRANSACTIONS = CollectionSpec(
    name="transactions",
    local_prefix="transactions",
    remote_name="transactions",
    empty=list,
    id_field="id",
)
ARCHIVES = CollectionSpec(
    name="archives",
    local_prefix="archived",
    remote_name="archived",
    empty=list,
    id_field="key",
)
BUDGETS = CollectionSpec(
    name="budgets",
    local_prefix="categoryBudgets",
    remote_name="settings",
    empty=dict,
    document_id="categoryBudgets",
)
CUSTOM_FIELDS = CollectionSpec(
    name="custom_fields",
    local_prefix="customFields",
    remote_name="customFields",
    empty=list,
    document_id="fields",
    wrap_field="items",
)
CUSTOM_FIELD_VALUES = CollectionSpec(
    name="custom_field_values",
    local_prefix="customFieldValues",
    remote_name="customFields",
    empty=dict,
    document_id="values",
)

COLLECTIONS: dict[str, CollectionSpec] = {
    spec.name: spec
    for spec in (TRANSACTIONS, ARCHIVES, BUDGETS, CUSTOM_FIELDS, CUSTOM_FIELD_VALUES)
}


def get_collection(name: str) -> CollectionSpec:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise KeyError(f"Unknown collection: {name}") from None
