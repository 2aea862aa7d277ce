from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..csvio.reader import CsvRow, parse_list, split_positional
from ..db.catalog import CatalogError, CatalogStore
from ..models.processing_result import RowResult
from .context import RowContext
from .normalize import is_digits, normalize_label
from .store_resolver import StoreResolver

"""Attribute set / group handling.

- assign_to_attribute_sets(): 属性を attribute set + group へ割り当て
  (set / group が無ければ作成)
- delete_attribute_sets(): attribute-set モードの一括削除 (Default は常に保護)
"""

__all__ = [
    "parse_optional_int",
    "assign_to_attribute_sets",
    "SetDeletionTarget",
    "collect_unique_set_names",
    "delete_attribute_sets",
]

logger = logging.getLogger(__name__)

DEFAULT_SET_NAME = "Default"


def parse_optional_int(value: str | None) -> int | None:
    """Digits only; anything else (including blank) is None."""
    value = (value or "").strip()
    return int(value) if is_digits(value) else None


# ---------------------------------------------------------------- assignment
def _ensure_attribute_set(ctx: RowContext, name_or_id: str | int, sort_order: int | None) -> int | None:
    catalog = ctx.catalog
    if isinstance(name_or_id, int) or is_digits(name_or_id):
        set_id = int(name_or_id)
        found = catalog.get_attribute_set(set_id)
        if found is None:
            ctx.notice(f"The attribute set ID '{set_id}' does not exist; skipping")
            return None
        if sort_order is not None:
            catalog.update_attribute_set_sort_order(set_id, sort_order)
        return found.attribute_set_id

    found = catalog.get_attribute_set(name_or_id)
    if found is not None:
        if sort_order is not None:
            catalog.update_attribute_set_sort_order(found.attribute_set_id, sort_order)
        return found.attribute_set_id

    try:
        set_id = catalog.create_attribute_set(name_or_id, sort_order, catalog.default_attribute_set_id())
    except CatalogError as e:
        ctx.fail(
            "ATTRIBUTE_SET_CREATE_ERROR",
            f"An error occurred while creating attribute set '{name_or_id}': {e}",
        )
        return None
    ctx.notice(f"The attribute set '{name_or_id}' did not exist; created automatically")
    return set_id


def _ensure_attribute_group(ctx: RowContext, set_id: int, group_name: str, sort_order: int | None) -> int:
    default_group_id = ctx.catalog.default_group_id(set_id)
    if group_name == "":
        return default_group_id
    try:
        return ctx.catalog.ensure_attribute_group(set_id, group_name, sort_order)
    except CatalogError:
        ctx.notice(f"The attribute group '{group_name}' could not be created or retrieved; using default group")
        return default_group_id


def assign_to_attribute_sets(ctx: RowContext) -> None:
    """Attach the row's attribute to its attribute set(s) and group.

    ``attribute_set`` blank -> the catalog's default set. ``attribute_set_order``
    with a single value applies to every set, otherwise it is index-aligned.
    """
    row = ctx.row
    set_cells = split_positional(row.cell("attribute_set"))
    targets: list[tuple[int, str | int]] = [(i, v) for i, v in enumerate(set_cells) if v != ""]
    if not targets:
        targets = [(0, ctx.catalog.default_attribute_set_id())]

    set_orders = split_positional(row.cell("attribute_set_order"))
    order_values = [v for v in set_orders if v != ""]
    shared_order = parse_optional_int(order_values[0]) if len(order_values) == 1 else None
    if len(order_values) > 1 and len(order_values) != len(targets):
        ctx.notice(
            f"The number of 'attribute_set_order' values ({len(order_values)}) does not match the "
            f"number of 'attribute_set' values ({len(targets)}) for attribute '{ctx.code}'"
        )

    group_name = row.cell("group")
    group_order = parse_optional_int(row.cell("group_order"))
    sort_order = parse_optional_int(row.cell("sort_order"))

    processed: set[int] = set()
    for index, name_or_id in targets:
        if len(order_values) == 1:
            set_order = shared_order
        else:
            set_order = parse_optional_int(set_orders[index]) if index < len(set_orders) else None
        set_id = _ensure_attribute_set(ctx, name_or_id, set_order)
        if set_id is None or set_id in processed:
            continue
        processed.add(set_id)
        group_id = _ensure_attribute_group(ctx, set_id, group_name, group_order)
        ctx.catalog.add_attribute_to_set(ctx.code, set_id, group_id, sort_order)


# ------------------------------------------------------------------ deletion
@dataclass(frozen=True)
class SetDeletionTarget:
    name: str  # 最初に出現した表記
    row: CsvRow  # 最初に出現した行


def collect_unique_set_names(rows: Iterable[CsvRow]) -> list[SetDeletionTarget]:
    """Unique ``attribute_set`` values across rows (case-insensitive, first casing wins)."""
    unique: dict[str, SetDeletionTarget] = {}
    for row in rows:
        for name in parse_list(row.cell("attribute_set")):
            key = normalize_label(name)
            if key != "" and key not in unique:
                unique[key] = SetDeletionTarget(name, row)
    return list(unique.values())


def _delete_one(ctx: RowContext, default_set_name: str) -> None:
    name = ctx.code
    catalog = ctx.catalog
    protected = {normalize_label(DEFAULT_SET_NAME), normalize_label(default_set_name)}
    if normalize_label(name) in protected:
        ctx.notice("The default attribute set cannot be deleted; skipping")
        ctx.result.skipped += 1
        return
    try:
        found = catalog.get_attribute_set(int(name) if is_digits(name) else name)
        default_set_id = catalog.default_attribute_set_id()
    except CatalogError as e:
        ctx.fail("ATTRIBUTE_SET_LOAD_ERROR", f"An error occurred while loading attribute set '{name}': {e}")
        return
    if found is None:
        ctx.warn(f"The attribute set '{name}' does not exist; skipping")
        ctx.result.skipped += 1
        return
    if found.attribute_set_id == default_set_id:
        ctx.notice("The default attribute set cannot be deleted; skipping")
        ctx.result.skipped += 1
        return
    try:
        catalog.remove_attribute_set(found.attribute_set_id)
    except CatalogError as e:
        ctx.fail("ATTRIBUTE_SET_DELETE_ERROR", f"An error occurred while deleting attribute set '{name}': {e}")
        return
    ctx.result.deleted += 1


def delete_attribute_sets(
    targets: list[SetDeletionTarget],
    catalog: CatalogStore,
    stores: StoreResolver,
    *,
    file_name: str,
    default_set_name: str = DEFAULT_SET_NAME,
    verbose: bool = False,
) -> list[RowResult]:
    """Delete each target set; one RowResult per unique set name."""
    results: list[RowResult] = []
    for target in targets:
        logger.info(f"Deleting attribute set '{target.name}'...")
        result = RowResult(row_number=target.row.line_number, entity=target.name)
        ctx = RowContext(target.row, catalog, stores, result, file_name=file_name, verbose=verbose)
        _delete_one(ctx, default_set_name)
        results.append(result)
    return results
