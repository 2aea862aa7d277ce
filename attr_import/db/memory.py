from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from .catalog import (
    ADMIN_STORE_ID,
    FIELD_COLUMNS,
    AttributeRecord,
    AttributeSetRecord,
    CatalogError,
    CatalogNotFound,
    NewOption,
    OptionRecord,
    StoreLabel,
)

"""Dict-backed CatalogStore.

Used when DISABLE_DB_CONNECT=1 (mock mode) and as the catalog double of the
test suite. Returned records are copies; state only changes through the
CatalogStore methods, and every mutating call is appended to ``calls``.
"""

__all__ = [
    "InMemoryCatalog",
]

DEFAULT_SET_ID = 4
DEFAULT_GROUP_NAME = "General"


@dataclass
class _Group:
    group_id: int
    name: str
    sort_order: int = 0
    is_default: bool = False


class InMemoryCatalog:
    def __init__(
        self,
        stores: dict[str, int] | None = None,
        *,
        admin_store_code: str = "admin",
        default_set_name: str = "Default",
    ) -> None:
        self.stores: dict[str, int] = {admin_store_code: ADMIN_STORE_ID}
        self.stores.update(stores or {})
        self.attributes: dict[str, AttributeRecord] = {}
        self.options: dict[str, list[OptionRecord]] = {}
        self.attribute_sets: dict[int, AttributeSetRecord] = {}
        self.groups: dict[int, list[_Group]] = {}
        # attribute_code -> {set_id: (group_id, sort_order)}
        self.assignments: dict[str, dict[int, tuple[int, int | None]]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.cache_clears = 0
        self._next_attribute_id = 1
        self._next_option_id = 1
        self._next_set_id = DEFAULT_SET_ID + 1
        self._next_group_id = 1
        self._default_set_id = DEFAULT_SET_ID
        self.attribute_sets[DEFAULT_SET_ID] = AttributeSetRecord(DEFAULT_SET_ID, default_set_name, 1)
        self.groups[DEFAULT_SET_ID] = [self._new_group(DEFAULT_GROUP_NAME, 1, is_default=True)]

    # ------------------------------------------------------------------ helpers
    def _new_group(self, name: str, sort_order: int, is_default: bool = False) -> _Group:
        group = _Group(self._next_group_id, name, sort_order, is_default)
        self._next_group_id += 1
        return group

    def _require_attribute(self, code: str) -> AttributeRecord:
        attribute = self.attributes.get(code)
        if attribute is None:
            raise CatalogNotFound(f"The attribute with a \"{code}\" attributeCode doesn't exist.")
        return attribute

    def _require_set(self, set_id: int) -> AttributeSetRecord:
        attribute_set = self.attribute_sets.get(set_id)
        if attribute_set is None:
            raise CatalogNotFound(f"No such attribute set: {set_id}")
        return attribute_set

    def _insert_option(self, code: str, option: NewOption) -> int:
        options = self.options.setdefault(code, [])
        option_id = self._next_option_id
        self._next_option_id += 1
        sort_order = option.sort_order if option.sort_order is not None else 0
        options.append(OptionRecord(option_id, option.label, sort_order, list(option.store_labels)))
        return option_id

    # ------------------------------------------------------------- attributes
    def get_attribute(self, code: str) -> AttributeRecord | None:
        attribute = self.attributes.get(code)
        return copy.deepcopy(attribute) if attribute is not None else None

    def save_attribute(
        self, code: str, data: dict[str, str], options: list[NewOption] | None = None
    ) -> AttributeRecord:
        self.calls.append(("save_attribute", code, dict(data), list(options or [])))
        attribute = self.attributes.get(code)
        if attribute is None:
            attribute = AttributeRecord(attribute_id=self._next_attribute_id, attribute_code=code)
            self._next_attribute_id += 1
            self.attributes[code] = attribute
            self.options.setdefault(code, [])
        for key, value in data.items():
            field_name = FIELD_COLUMNS.get(key)
            if field_name is not None:
                setattr(attribute, field_name, value)
            else:
                attribute.properties[key] = value
        for option in options or []:
            self._insert_option(code, option)
        return copy.deepcopy(attribute)

    def remove_attribute(self, code: str) -> None:
        self.calls.append(("remove_attribute", code))
        self._require_attribute(code)
        del self.attributes[code]
        self.options.pop(code, None)
        self.assignments.pop(code, None)

    def set_default_value(self, code: str, value: str) -> None:
        self.calls.append(("set_default_value", code, value))
        self._require_attribute(code).default_value = value

    def set_store_labels(self, code: str, labels: list[StoreLabel]) -> None:
        self.calls.append(("set_store_labels", code, list(labels)))
        self._require_attribute(code).store_labels = list(labels)

    def clear_cache(self) -> None:
        self.cache_clears += 1

    # ---------------------------------------------------------------- options
    def list_options(self, code: str) -> list[OptionRecord]:
        self._require_attribute(code)
        ordered = sorted(self.options.get(code, []), key=lambda o: (o.sort_order, o.option_id))
        return copy.deepcopy(ordered)

    def add_option(self, code: str, option: NewOption) -> int:
        self.calls.append(("add_option", code, option))
        self._require_attribute(code)
        return self._insert_option(code, option)

    def delete_option(self, code: str, option_id: int) -> None:
        self.calls.append(("delete_option", code, option_id))
        self._require_attribute(code)
        options = self.options.get(code, [])
        remaining = [o for o in options if o.option_id != option_id]
        if len(remaining) == len(options):
            raise CatalogNotFound(f"The option with \"{option_id}\" ID doesn't exist.")
        self.options[code] = remaining

    # ----------------------------------------------------------------- stores
    def get_store_id(self, store_code: str) -> int | None:
        return self.stores.get(store_code)

    # ----------------------------------------------------- attribute sets/groups
    def default_attribute_set_id(self) -> int:
        return self._default_set_id

    def get_attribute_set(self, name_or_id: str | int) -> AttributeSetRecord | None:
        if isinstance(name_or_id, int):
            found = self.attribute_sets.get(name_or_id)
            return copy.deepcopy(found) if found is not None else None
        wanted = name_or_id.strip().lower()
        for attribute_set in self.attribute_sets.values():
            if attribute_set.name.lower() == wanted:
                return copy.deepcopy(attribute_set)
        return None

    def create_attribute_set(self, name: str, sort_order: int | None, skeleton_set_id: int) -> int:
        self.calls.append(("create_attribute_set", name, sort_order, skeleton_set_id))
        self._require_set(skeleton_set_id)
        if self.get_attribute_set(name) is not None:
            raise CatalogError(f"An attribute set named \"{name}\" already exists.")
        set_id = self._next_set_id
        self._next_set_id += 1
        self.attribute_sets[set_id] = AttributeSetRecord(set_id, name, sort_order or 0)
        # skeleton のグループ構成を複製
        self.groups[set_id] = [
            self._new_group(g.name, g.sort_order, g.is_default) for g in self.groups.get(skeleton_set_id, [])
        ]
        return set_id

    def update_attribute_set_sort_order(self, set_id: int, sort_order: int) -> None:
        self.calls.append(("update_attribute_set_sort_order", set_id, sort_order))
        self._require_set(set_id).sort_order = sort_order

    def remove_attribute_set(self, set_id: int) -> None:
        self.calls.append(("remove_attribute_set", set_id))
        self._require_set(set_id)
        del self.attribute_sets[set_id]
        self.groups.pop(set_id, None)
        for assigned in self.assignments.values():
            assigned.pop(set_id, None)

    def default_group_id(self, set_id: int) -> int:
        self._require_set(set_id)
        groups = self.groups.get(set_id, [])
        for group in groups:
            if group.is_default:
                return group.group_id
        if not groups:
            raise CatalogNotFound(f"Attribute set {set_id} has no groups")
        return min(groups, key=lambda g: g.sort_order).group_id

    def ensure_attribute_group(self, set_id: int, name: str, sort_order: int | None) -> int:
        self.calls.append(("ensure_attribute_group", set_id, name, sort_order))
        self._require_set(set_id)
        groups = self.groups.setdefault(set_id, [])
        for group in groups:
            if group.name.lower() == name.lower():
                if sort_order is not None:
                    group.sort_order = sort_order
                return group.group_id
        if sort_order is None:
            sort_order = max((g.sort_order for g in groups), default=0) + 1
        group = self._new_group(name, sort_order)
        groups.append(group)
        return group.group_id

    def add_attribute_to_set(self, code: str, set_id: int, group_id: int, sort_order: int | None) -> None:
        self.calls.append(("add_attribute_to_set", code, set_id, group_id, sort_order))
        self._require_attribute(code)
        self._require_set(set_id)
        if all(g.group_id != group_id for g in self.groups.get(set_id, [])):
            raise CatalogNotFound(f"Attribute group {group_id} is not part of set {set_id}")
        assigned = self.assignments.setdefault(code, {})
        if sort_order is None and set_id in assigned:
            sort_order = assigned[set_id][1]
        assigned[set_id] = (group_id, sort_order)

    # ------------------------------------------------------------------ debug
    def group_name(self, group_id: int) -> str | None:
        for groups in self.groups.values():
            for group in groups:
                if group.group_id == group_id:
                    return group.name
        return None
