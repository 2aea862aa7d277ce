from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

"""Catalog metadata store interface.

The reconciliation services only talk to the catalog through ``CatalogStore``.
Two implementations exist:
- InMemoryCatalog (db/memory.py): mock mode / test double
- PostgresCatalog (db/postgres.py): psycopg2, tables from db/schema.sql

Every implementation raises ``CatalogError`` (or ``CatalogNotFound``) for
collaborator failures; callers catch them at the row / step boundary.
"""

__all__ = [
    "CatalogError",
    "CatalogNotFound",
    "StoreLabel",
    "OptionRecord",
    "NewOption",
    "AttributeRecord",
    "AttributeSetRecord",
    "CatalogStore",
    "FIELD_COLUMNS",
    "ADMIN_STORE_ID",
]

ADMIN_STORE_ID = 0

# CSV 列名 -> AttributeRecord フィールド (それ以外は properties へ)
FIELD_COLUMNS = {
    "label": "frontend_label",
    "input": "frontend_input",
    "default": "default_value",
    "backend": "backend_model",
    "source": "source_model",
}


class CatalogError(Exception):
    """Persistence collaborator failure."""

class CatalogNotFound(CatalogError):
    """Requested catalog entity does not exist."""


@dataclass(frozen=True)
class StoreLabel:
    store_id: int
    label: str


@dataclass
class OptionRecord:
    option_id: int
    label: str  # admin (store 0) ラベル
    sort_order: int = 0
    store_labels: list[StoreLabel] = field(default_factory=list)


@dataclass(frozen=True)
class NewOption:
    """Option to create: admin label, optional sort order, store overrides."""
    label: str
    sort_order: int | None = None
    store_labels: tuple[StoreLabel, ...] = ()


@dataclass
class AttributeRecord:
    attribute_id: int
    attribute_code: str
    frontend_input: str = ""
    frontend_label: str = ""
    default_value: str = ""
    backend_model: str = ""
    source_model: str = ""
    store_labels: list[StoreLabel] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)


@dataclass
class AttributeSetRecord:
    attribute_set_id: int
    name: str
    sort_order: int = 0


class CatalogStore(Protocol):
    # --- attributes ---
    def get_attribute(self, code: str) -> AttributeRecord | None: ...

    def save_attribute(
        self, code: str, data: dict[str, str], options: list[NewOption] | None = None
    ) -> AttributeRecord: ...

    def remove_attribute(self, code: str) -> None: ...

    def set_default_value(self, code: str, value: str) -> None: ...

    def set_store_labels(self, code: str, labels: list[StoreLabel]) -> None: ...

    def clear_cache(self) -> None: ...

    # --- options ---
    def list_options(self, code: str) -> list[OptionRecord]: ...

    def add_option(self, code: str, option: NewOption) -> int: ...

    def delete_option(self, code: str, option_id: int) -> None: ...

    # --- stores ---
    def get_store_id(self, store_code: str) -> int | None: ...

    # --- attribute sets / groups ---
    def default_attribute_set_id(self) -> int: ...

    def get_attribute_set(self, name_or_id: str | int) -> AttributeSetRecord | None: ...

    def create_attribute_set(
        self, name: str, sort_order: int | None, skeleton_set_id: int
    ) -> int: ...

    def update_attribute_set_sort_order(self, set_id: int, sort_order: int) -> None: ...

    def remove_attribute_set(self, set_id: int) -> None: ...

    def default_group_id(self, set_id: int) -> int: ...

    def ensure_attribute_group(self, set_id: int, name: str, sort_order: int | None) -> int: ...

    def add_attribute_to_set(
        self, code: str, set_id: int, group_id: int, sort_order: int | None
    ) -> None: ...
