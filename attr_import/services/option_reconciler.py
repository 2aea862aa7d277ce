from __future__ import annotations

from dataclasses import dataclass, field

from ..csvio.reader import parse_list, split_positional
from ..db.catalog import ADMIN_STORE_ID, AttributeRecord, CatalogError, NewOption, StoreLabel
from ..models.columns import ColumnKind
from .context import RowContext
from .normalize import duplicate_labels, is_digits, normalize_label
from .snapshot import ExistingAttributeSnapshot

"""Option reconciliation for select / multiselect attributes.

Flow for one row:
1. base labels (``option`` 列) を位置付きで読み、正規化ラベルで重複除去
2. option_strategy=replace なら既存 option を全削除
3. ``option_{storeCode}`` 列を store id に解決し、位置で対応付け
4. base ラベルが空の位置は scoped ラベルで補完
5. option_order から sort order を解決 (欠けた分は max + 10 刻み)
6. 新規属性 / replace 時は作成 payload に埋め込み、既存属性は未登録分だけ個別追加

resolve_default() は保存後に ``default`` 列を option id へ解決する。
"""

__all__ = [
    "SELECT_INPUT",
    "MULTISELECT_INPUT",
    "PlannedOption",
    "supports_options",
    "plan_options",
    "reconcile_options",
    "resolve_default",
]

SELECT_INPUT = "select"
MULTISELECT_INPUT = "multiselect"
REPLACE_STRATEGY = "replace"
FALLBACK_ORDER_STEP = 10


@dataclass
class PlannedOption:
    """One option built from the row (synthetic key ``option_{position}``)."""
    key: str
    label: str
    store_labels: dict[int, str] = field(default_factory=dict)
    sort_order: int | None = None

    def identities(self) -> set[str]:
        labels = [self.label, *self.store_labels.values()]
        return {n for n in (normalize_label(label) for label in labels) if n != ""}

    def to_new_option(self) -> NewOption:
        return NewOption(
            label=self.label.strip(),
            sort_order=self.sort_order,
            store_labels=tuple(
                StoreLabel(store_id, label.strip())
                for store_id, label in self.store_labels.items()
                if label.strip() != ""
            ),
        )


def supports_options(frontend_input: str | None, source_cell: str) -> bool:
    """select / multiselect かつ source 列が空のときだけ option を扱う."""
    return normalize_label(frontend_input) in (SELECT_INPUT, MULTISELECT_INPUT) and source_cell == ""


def _scoped_option_columns(ctx: RowContext, *, report: bool = True) -> dict[int, list[str]]:
    """store id -> positional scoped labels, in column order."""
    by_store: dict[int, list[str]] = {}
    for column in ctx.row.header_map.of_kind(ColumnKind.STORE_OPTION):
        cell = ctx.row.cell_at(column.index)
        if cell == "":
            continue
        assert column.store_code is not None
        store_id = ctx.stores.resolve(column.store_code)
        if store_id is None:
            if report:
                ctx.notice(
                    f"The store code '{column.store_code}' is not valid for attribute "
                    f"'{ctx.code}' on column '{column.name}'"
                )
            continue
        by_store[store_id] = split_positional(cell)
    return by_store


def _base_slots(raw_labels: list[str]) -> list[tuple[int, str]]:
    """(raw position, label); later duplicates dropped, empty slots kept for fallback."""
    seen: set[str] = set()
    slots: list[tuple[int, str]] = []
    for index, label in enumerate(raw_labels):
        key = normalize_label(label)
        if key == "":
            slots.append((index, ""))
            continue
        if key in seen:
            continue
        seen.add(key)
        slots.append((index, label))
    return slots


def _fallback_label(ctx: RowContext, index: int, scoped: dict[int, list[str]]) -> str:
    for labels in scoped.values():
        candidate = labels[index] if index < len(labels) else ""
        if candidate != "":
            ctx.notice(
                f"Using scoped option label '{candidate}' as fallback for missing base option "
                f"label at index {index}; treating as base label"
            )
            return candidate
    return ""


def _build_options(
    ctx: RowContext, raw_labels: list[str], scoped: dict[int, list[str]]
) -> list[PlannedOption]:
    for store_id, labels in scoped.items():
        if len(labels) != len(raw_labels):
            ctx.notice(
                f"The number of scoped option labels for store {store_id} ({len(labels)}) does not "
                f"match the number of base option labels ({len(raw_labels)}) for attribute "
                f"'{ctx.code}'; mapping by index, extras ignored"
            )
    seen = {normalize_label(label) for _, label in _base_slots(raw_labels) if label != ""}
    planned: list[PlannedOption] = []
    for index, label in _base_slots(raw_labels):
        if label == "":
            label = _fallback_label(ctx, index, scoped)
            if label == "":
                ctx.notice(f"The option label at index {index} for attribute '{ctx.code}' is empty; skipping")
                continue
            key = normalize_label(label)
            if key in seen:
                ctx.notice(
                    f"The fallback option label '{label}' duplicates another option of attribute "
                    f"'{ctx.code}'; skipping"
                )
                continue
            seen.add(key)
        option = PlannedOption(key=f"option_{index}", label=label)
        for store_id, labels in scoped.items():
            scoped_label = labels[index] if index < len(labels) else ""
            if scoped_label != "" and store_id != ADMIN_STORE_ID:
                option.store_labels[store_id] = scoped_label
        planned.append(option)
    return planned


def _apply_sort_orders(ctx: RowContext, raw_labels: list[str], planned: list[PlannedOption]) -> None:
    order_cell = ctx.row.cell("option_order")
    if not planned or order_cell == "":
        return
    orders = split_positional(order_cell)
    # option_order は重複除去前の option 列と位置で対応
    first_order: dict[str, int] = {}
    seen: set[str] = set()
    for index, label in enumerate(raw_labels):
        key = normalize_label(label)
        if key == "" or key in seen:
            continue
        seen.add(key)
        value = orders[index] if index < len(orders) else ""
        if value == "":
            continue
        if not is_digits(value):
            ctx.notice(
                f"The value '{value}' for option '{key}' is not a valid sort order for attribute "
                f"'{ctx.code}'; ignoring this order"
            )
            continue
        first_order[key] = int(value)

    missing: list[PlannedOption] = []
    for option in planned:
        key = normalize_label(option.label)
        if key in first_order:
            option.sort_order = first_order[key]
        else:
            missing.append(option)
    highest = max((o.sort_order for o in planned if o.sort_order is not None), default=0)
    for position, option in enumerate(missing, start=1):
        option.sort_order = highest + FALLBACK_ORDER_STEP * position


def plan_options(ctx: RowContext, frontend_input: str | None) -> list[PlannedOption]:
    """Build the row's option plan without touching the catalog (stores aside)."""
    source_cell = ctx.row.cell("source")
    option_cell = ctx.row.cell("option")
    if source_cell != "" and option_cell != "":
        ctx.notice(f"Both 'option' and 'source' are set for attribute '{ctx.code}'; ignoring 'option'")
    if not supports_options(frontend_input, source_cell):
        return []
    raw_labels = split_positional(option_cell)
    if not parse_list(option_cell):
        return []
    duplicates = duplicate_labels(raw_labels)
    if duplicates:
        ctx.notice(
            f"The attribute '{ctx.code}' contains duplicate option labels: "
            f"{', '.join(duplicates)}; keeping first occurrence(s)"
        )
    scoped = _scoped_option_columns(ctx)
    planned = _build_options(ctx, raw_labels, scoped)
    _apply_sort_orders(ctx, raw_labels, planned)
    return planned


def _delete_all_options(ctx: RowContext) -> None:
    try:
        for option in ctx.catalog.list_options(ctx.code):
            if option.option_id > 0:
                ctx.catalog.delete_option(ctx.code, option.option_id)
    except CatalogError as e:
        ctx.fail(
            "OPTION_DELETE_ERROR",
            f"An error occurred while deleting existing options for replacement for attribute "
            f"'{ctx.code}': {e}",
        )


def _existing_identities(ctx: RowContext, snapshot: ExistingAttributeSnapshot) -> set[str]:
    try:
        options = snapshot.options
    except CatalogError as e:
        # 取得失敗時は重複除外なしで続行
        ctx.fail(
            "OPTION_FETCH_ERROR",
            f"An error occurred while fetching existing options for attribute '{ctx.code}': {e}",
        )
        return set()
    return {normalize_label(o.label) for o in options if o.label.strip() != ""}


def _build_missing(ctx: RowContext, planned: list[PlannedOption], existing: set[str]) -> list[NewOption]:
    built: list[NewOption] = []
    for option in planned:
        if option.label.strip() == "":
            continue
        if option.identities() & existing:
            ctx.notice(f"The option '{option.label}' already exists for attribute '{ctx.code}'; skipping")
            continue
        built.append(option.to_new_option())
    return built


def _add_incrementally(ctx: RowContext, planned: list[PlannedOption], existing: set[str]) -> None:
    for option in planned:
        if option.identities() & existing:
            ctx.notice(f"The option '{option.label}' already exists for attribute '{ctx.code}'; skipping")
            continue
        new_option = option.to_new_option()
        if new_option.label == "":
            ctx.notice(f"The option label for attribute '{ctx.code}' is empty; skipping")
            continue
        try:
            ctx.catalog.add_option(ctx.code, new_option)
        except CatalogError as e:
            ctx.fail(
                "OPTION_ADD_ERROR",
                f"An error occurred while adding option '{new_option.label}' to attribute '{ctx.code}': {e}",
            )
            continue
        ctx.notice(f"Added option '{new_option.label}' to attribute '{ctx.code}'")


def reconcile_options(
    ctx: RowContext,
    frontend_input: str | None,
    *,
    attribute_exists: bool,
    snapshot: ExistingAttributeSnapshot,
    assume_no_existing_options: bool = False,
    allow_replace: bool = True,
) -> list[NewOption]:
    """Apply the row's options; return the options to embed in the save payload.

    The create path (new attribute or replace strategy) returns every planned
    option. With ``assume_no_existing_options`` the options are built for the
    save payload as on the create path, minus identities already stored for
    the attribute, so no label ends up stored twice. The merge path adds the
    missing options one by one and returns ``[]``.
    """
    planned = plan_options(ctx, frontend_input)
    if not planned:
        return []

    replaced = False
    strategy = normalize_label(ctx.row.cell("option_strategy"))
    if attribute_exists and allow_replace and strategy == REPLACE_STRATEGY:
        ctx.notice(
            f"Replacing existing options for attribute '{ctx.code}'; existing options will be "
            f"deleted before adding new ones"
        )
        _delete_all_options(ctx)
        replaced = True

    if not attribute_exists or replaced:
        return [option.to_new_option() for option in planned if option.label.strip() != ""]
    if assume_no_existing_options:
        return _build_missing(ctx, planned, _existing_identities(ctx, snapshot))

    _add_incrementally(ctx, planned, _existing_identities(ctx, snapshot))
    return []


def _row_label_sets(ctx: RowContext) -> list[list[str]]:
    """Normalized label set per unique base option (base + scoped labels at that position)."""
    raw_labels = split_positional(ctx.row.cell("option"))
    if not parse_list(ctx.row.cell("option")):
        return []
    scoped = _scoped_option_columns(ctx, report=False)
    sets: list[list[str]] = []
    seen: set[str] = set()
    for index, label in enumerate(raw_labels):
        key = normalize_label(label)
        if key == "" or key in seen:
            continue
        seen.add(key)
        labels = [key]
        for scoped_labels in scoped.values():
            scoped_key = normalize_label(scoped_labels[index] if index < len(scoped_labels) else "")
            if scoped_key != "" and scoped_key not in labels:
                labels.append(scoped_key)
        sets.append(labels)
    return sets


def resolve_default(ctx: RowContext, frontend_input: str | None, attribute: AttributeRecord) -> None:
    """Resolve the ``default`` cell to option id(s) and store it when it changed.

    Values are accepted as existing option ids or as labels, matched by
    normalized identity against stored options and against the row's own
    labels (so an option added by this row can be the default). Unresolvable
    values are reported and left out.
    """
    if not supports_options(frontend_input, ctx.row.cell("source")):
        return
    default_cell = ctx.row.cell("default")
    if default_cell == "":
        return
    multiselect = normalize_label(frontend_input) == MULTISELECT_INPUT
    values = parse_list(default_cell) if multiselect else [default_cell]

    options = ctx.catalog.list_options(attribute.attribute_code)
    id_set = {o.option_id for o in options if o.option_id > 0}
    label_to_id: dict[str, int] = {}
    for option in options:
        if option.option_id > 0 and option.label.strip() != "":
            label_to_id.setdefault(normalize_label(option.label), option.option_id)

    label_sets = _row_label_sets(ctx)
    index_to_id: dict[int, int] = {}
    for option in options:
        if option.option_id <= 0:
            continue
        key = normalize_label(option.label)
        for index, labels in enumerate(label_sets):
            if key in labels:
                index_to_id.setdefault(index, option.option_id)
                break
    for index, labels in enumerate(label_sets):
        option_id = index_to_id.get(index)
        if option_id is None:
            continue
        for label in labels:
            label_to_id[label] = option_id

    resolved: list[int] = []
    for value in values:
        value = value.strip()
        if value == "":
            continue
        if is_digits(value) and int(value) in id_set:
            resolved.append(int(value))
            continue
        key = normalize_label(value)
        if key in label_to_id:
            resolved.append(label_to_id[key])
        elif ctx.verbose:
            ctx.warn(
                f"The option label '{key}' for attribute '{ctx.code}' is not valid; "
                f"available options: {', '.join(label_to_id)}"
            )
        else:
            ctx.warn(f"The option label '{key}' for attribute '{ctx.code}' is not valid; not set as default")

    resolved = list(dict.fromkeys(resolved))
    if not resolved:
        return
    default_value = ",".join(str(i) for i in resolved) if multiselect else str(resolved[0])
    if (attribute.default_value or "") == default_value:
        return
    ctx.catalog.set_default_value(attribute.attribute_code, default_value)
