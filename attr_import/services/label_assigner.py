from __future__ import annotations

from ..db.catalog import AttributeRecord, StoreLabel
from ..models.columns import ColumnKind
from .context import RowContext

"""Store-scoped frontend labels (``label_{storeCode}`` columns)."""

__all__ = [
    "collect_store_labels",
    "merge_store_labels",
    "apply_store_labels",
]


def collect_store_labels(ctx: RowContext) -> dict[int, str]:
    """store id -> label for every non-empty, resolvable ``label_*`` cell."""
    labels: dict[int, str] = {}
    for column in ctx.row.header_map.of_kind(ColumnKind.STORE_LABEL):
        cell = ctx.row.cell_at(column.index)
        if cell == "":
            continue
        assert column.store_code is not None
        store_id = ctx.stores.resolve(column.store_code)
        if store_id is None:
            ctx.notice(
                f"The store code '{column.store_code}' is not valid for attribute '{ctx.code}' "
                f"on column '{column.name}'; column ignored"
            )
            continue
        labels[store_id] = cell
    return labels


def merge_store_labels(current: list[StoreLabel], incoming: dict[int, str]) -> list[StoreLabel]:
    # 上書き対象 store の既存ラベルを除いてから追加
    kept = [label for label in current if label.store_id not in incoming]
    return kept + [StoreLabel(store_id, label) for store_id, label in incoming.items()]


def apply_store_labels(ctx: RowContext, attribute: AttributeRecord) -> bool:
    """Merge the row's scoped labels into the attribute; save only on change.

    Returns True when the catalog was written.
    """
    incoming = collect_store_labels(ctx)
    if not incoming:
        return False
    current = list(attribute.store_labels)
    merged = merge_store_labels(current, incoming)
    if set(merged) == set(current):
        return False
    ctx.catalog.set_store_labels(attribute.attribute_code, merged)
    return True
