from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..csvio.reader import CsvRow, parse_list
from ..db.catalog import AttributeRecord, CatalogError, CatalogNotFound
from ..models.columns import ColumnKind
from ..models.import_options import Behavior
from .attribute_set_reconciler import assign_to_attribute_sets
from .context import RowContext
from .label_assigner import apply_store_labels
from .normalize import normalize_label
from .option_reconciler import MULTISELECT_INPUT, reconcile_options, resolve_default
from .snapshot import ExistingAttributeSnapshot

"""Per-row attribute reconciliation (add / update / delete).

1 行の処理順:
  存在確認 → behavior 判定 → payload 構築 → 既存値の継承 (input / default / label)
  → input 型変更の検出 → option 調整 → 保存 + cache clear
  → (型変更時) option 追加の2回目 → default / store label / attribute set 割当
保存後の各ステップは個別に例外を捕捉し、行は added / updated として数える。
"""

__all__ = [
    "ARRAY_BACKEND",
    "build_attribute_data",
    "process_attribute_row",
]

logger = logging.getLogger(__name__)

# multiselect 用の配列対応 backend model
ARRAY_BACKEND = "array"


def build_attribute_data(row: CsvRow) -> dict[str, str]:
    """Attribute-definition payload from the row's scalar columns.

    Blank cells are left out (the stored value is kept). ``apply_to`` is a
    ``;`` list re-joined with commas, de-duplicated.
    """
    data: dict[str, str] = {}
    for column in row.header_map.of_kind(ColumnKind.SCALAR):
        value = row.cell_at(column.index)
        if value != "":
            data[column.name] = value
    if "apply_to" in data:
        apply_to = list(dict.fromkeys(parse_list(data["apply_to"])))
        if apply_to:
            data["apply_to"] = ",".join(apply_to)
        else:
            del data["apply_to"]
    return data


def _load_failed(ctx: RowContext, e: CatalogError) -> None:
    ctx.fail(
        "ATTRIBUTE_LOAD_ERROR",
        f"An error occurred while loading existing attribute '{ctx.code}': {e}",
    )


def _inherit_frontend_input(
    ctx: RowContext, data: dict[str, str], exists: bool, snapshot: ExistingAttributeSnapshot
) -> str:
    frontend_input = data.get("input", "")
    if not exists or frontend_input != "":
        return frontend_input
    try:
        frontend_input = snapshot.frontend_input
    except CatalogError as e:
        _load_failed(ctx, e)
        return ""
    if frontend_input != "":
        data["input"] = frontend_input
    return frontend_input


def _ensure_multiselect_backend(frontend_input: str, data: dict[str, str]) -> None:
    if normalize_label(frontend_input) == MULTISELECT_INPUT and not data.get("backend"):
        data["backend"] = ARRAY_BACKEND


def _inherit_default(
    ctx: RowContext, data: dict[str, str], exists: bool, snapshot: ExistingAttributeSnapshot
) -> None:
    if not exists or "default" in data:
        return
    try:
        current = snapshot.default_value
    except CatalogError as e:
        _load_failed(ctx, e)
        return
    if current != "":
        data["default"] = current


def _detect_input_change(
    ctx: RowContext, exists: bool, frontend_input: str, snapshot: ExistingAttributeSnapshot
) -> bool:
    """True when an existing attribute's frontend input type is about to change."""
    if not exists or frontend_input == "":
        return False
    try:
        current = snapshot.frontend_input.strip().lower()
    except CatalogError as e:
        _load_failed(ctx, e)
        return False
    incoming = frontend_input.strip().lower()
    if current == "" or current == incoming:
        return False
    ctx.warn(f"The frontend input type for attribute '{ctx.code}' is changing from '{current}' to '{incoming}'")
    return True


def _inherit_label(
    ctx: RowContext, data: dict[str, str], exists: bool, snapshot: ExistingAttributeSnapshot
) -> None:
    if not exists or data.get("label", "") != "":
        return
    try:
        current = snapshot.default_label
    except CatalogError as e:
        _load_failed(ctx, e)
        return
    if current != "":
        data["label"] = current


def _delete_attribute(ctx: RowContext, exists: bool) -> None:
    if not exists:
        ctx.warn(f"The attribute '{ctx.code}' does not exist and cannot be deleted; skipping")
        ctx.result.skipped += 1
        return
    try:
        ctx.catalog.remove_attribute(ctx.code)
        ctx.catalog.clear_cache()
    except CatalogError as e:
        ctx.fail("ATTRIBUTE_DELETE_ERROR", f"An error occurred while deleting attribute '{ctx.code}': {e}")
        return
    ctx.result.deleted += 1


def _run_step(ctx: RowContext, error_type: str, action: str, step: Callable[..., Any], *args: Any) -> None:
    try:
        step(*args)
    except Exception as e:  # 保存済みの行は後続ステップ・後続行を継続
        ctx.fail(error_type, f"An error occurred while {action} for attribute '{ctx.code}': {e}")


def _reload(ctx: RowContext) -> AttributeRecord | None:
    try:
        attribute = ctx.catalog.get_attribute(ctx.code)
        if attribute is None:
            raise CatalogNotFound(f"The attribute with a \"{ctx.code}\" attributeCode doesn't exist.")
    except CatalogError as e:
        _load_failed(ctx, e)
        return None
    return attribute


def _post_save(ctx: RowContext, frontend_input: str) -> None:
    attribute = _reload(ctx)
    if attribute is None:
        return
    _run_step(ctx, "DEFAULT_VALUE_ERROR", "setting default option(s)", resolve_default, ctx, frontend_input, attribute)
    _run_step(ctx, "STORE_LABEL_ERROR", "applying scoped frontend labels", apply_store_labels, ctx, attribute)
    _run_step(ctx, "ATTRIBUTE_SET_ERROR", "assigning attribute sets", assign_to_attribute_sets, ctx)


def process_attribute_row(ctx: RowContext, behavior: Behavior) -> None:
    """Reconcile one CSV row against the catalog; outcome lands in ``ctx.result``."""
    code = ctx.code
    try:
        exists = ctx.catalog.get_attribute(code) is not None
    except CatalogError as e:
        _load_failed(ctx, e)
        return

    if behavior is Behavior.DELETE:
        verb = "Deleting"
    elif behavior is Behavior.UPDATE and exists:
        verb = "Updating"
    else:
        verb = "Adding"
    logger.info(f"{verb} attribute '{code}'...")

    if behavior is Behavior.DELETE:
        _delete_attribute(ctx, exists)
        return
    if behavior is Behavior.ADD and exists:
        ctx.warn(f"The attribute '{code}' already exists and cannot be added; skipping")
        ctx.result.skipped += 1
        return

    snapshot = ExistingAttributeSnapshot(ctx.catalog, code)
    data = build_attribute_data(ctx.row)
    frontend_input = _inherit_frontend_input(ctx, data, exists, snapshot)
    _ensure_multiselect_backend(frontend_input, data)
    _inherit_default(ctx, data, exists, snapshot)
    input_changing = _detect_input_change(ctx, exists, frontend_input, snapshot)
    _inherit_label(ctx, data, exists, snapshot)

    # 型変更時は既存 option が無いものとして payload を組み立てる (1回目)
    embedded = reconcile_options(
        ctx,
        frontend_input,
        attribute_exists=exists,
        snapshot=snapshot,
        assume_no_existing_options=input_changing,
    )
    try:
        ctx.catalog.save_attribute(code, data, embedded or None)
        ctx.catalog.clear_cache()
    except CatalogError as e:
        action = "updating" if verb == "Updating" else "adding"
        ctx.fail("ATTRIBUTE_SAVE_ERROR", f"An error occurred while {action} attribute '{code}': {e}")
        return

    if input_changing:
        # 2回目: 保存後の option 集合に対して重複除外 + 個別追加
        reconcile_options(
            ctx,
            frontend_input,
            attribute_exists=True,
            snapshot=ExistingAttributeSnapshot(ctx.catalog, code),
            allow_replace=False,
        )
        ctx.catalog.clear_cache()

    if behavior is Behavior.UPDATE and exists:
        ctx.result.updated += 1
    else:
        ctx.result.added += 1

    _post_save(ctx, frontend_input)
