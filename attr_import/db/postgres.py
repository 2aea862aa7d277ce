from __future__ import annotations

import copy
from collections.abc import Sequence
from typing import Any

import psycopg2
from psycopg2.extras import Json

from .batch_insert import BatchInsertError, batch_insert
from .catalog import (
    FIELD_COLUMNS,
    AttributeRecord,
    AttributeSetRecord,
    CatalogError,
    CatalogNotFound,
    NewOption,
    OptionRecord,
    StoreLabel,
)

"""PostgreSQL CatalogStore (psycopg2).

- テーブル定義は db/schema.sql
- 接続は autocommit 前提: 行ごとの変更は即時確定し、行をまたぐロールバックはしない
- psycopg2 の例外はすべて CatalogError に包んで送出
"""

__all__ = [
    "PostgresCatalog",
]


class PostgresCatalog:
    def __init__(
        self,
        cursor: Any,
        *,
        entity_type: str = "catalog_product",
        default_set_name: str = "Default",
    ) -> None:
        self._cur = cursor
        self._entity_type = entity_type
        self._default_set_name = default_set_name
        # attribute_code -> AttributeRecord (clear_cache / save で破棄)
        self._attribute_cache: dict[str, AttributeRecord] = {}

    # ------------------------------------------------------------------ helpers
    def _execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        try:
            self._cur.execute(sql, tuple(params))
        except psycopg2.Error as e:
            raise CatalogError(str(e).strip()) from e

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> tuple[Any, ...] | None:
        self._execute(sql, params)
        return self._cur.fetchone()

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[tuple[Any, ...]]:
        self._execute(sql, params)
        return list(self._cur.fetchall())

    def _insert(self, table: str, columns: Sequence[str], rows: list[Sequence[Any]], returning: Sequence[str] | None = None):
        try:
            return batch_insert(self._cur, table, columns, rows, returning=returning)
        except BatchInsertError as e:
            raise CatalogError(str(e)) from e

    def _attribute_id(self, code: str) -> int:
        row = self._fetchone(
            "SELECT attribute_id FROM catalog_attribute WHERE entity_type = %s AND attribute_code = %s",
            (self._entity_type, code),
        )
        if row is None:
            raise CatalogNotFound(f"The attribute with a \"{code}\" attributeCode doesn't exist.")
        return int(row[0])

    def _insert_option_values(self, option_ids: Sequence[int], options: Sequence[NewOption]) -> None:
        value_rows: list[Sequence[Any]] = []
        for option_id, option in zip(option_ids, options, strict=True):
            value_rows.append((option_id, 0, option.label))
            value_rows.extend((option_id, sl.store_id, sl.label) for sl in option.store_labels)
        self._insert("catalog_attribute_option_value", ["option_id", "store_id", "value"], value_rows)

    def _insert_options(self, attribute_id: int, options: Sequence[NewOption]) -> list[int]:
        if not options:
            return []
        result = self._insert(
            "catalog_attribute_option",
            ["attribute_id", "sort_order"],
            [(attribute_id, o.sort_order if o.sort_order is not None else 0) for o in options],
            returning=["option_id"],
        )
        option_ids = [int(r[0]) for r in result.returned_values or []]
        self._insert_option_values(option_ids, options)
        return option_ids

    # ------------------------------------------------------------- attributes
    def get_attribute(self, code: str) -> AttributeRecord | None:
        cached = self._attribute_cache.get(code)
        if cached is not None:
            return copy.deepcopy(cached)
        row = self._fetchone(
            "SELECT attribute_id, attribute_code, frontend_input, frontend_label, default_value,"
            " backend_model, source_model, properties"
            " FROM catalog_attribute WHERE entity_type = %s AND attribute_code = %s",
            (self._entity_type, code),
        )
        if row is None:
            return None
        labels = self._fetchall(
            "SELECT store_id, label FROM catalog_attribute_label WHERE attribute_id = %s ORDER BY store_id",
            (row[0],),
        )
        record = AttributeRecord(
            attribute_id=int(row[0]),
            attribute_code=row[1],
            frontend_input=row[2] or "",
            frontend_label=row[3] or "",
            default_value=row[4] or "",
            backend_model=row[5] or "",
            source_model=row[6] or "",
            store_labels=[StoreLabel(int(s), label) for s, label in labels],
            properties={str(k): str(v) for k, v in (row[7] or {}).items()},
        )
        self._attribute_cache[code] = record
        return copy.deepcopy(record)

    def save_attribute(
        self, code: str, data: dict[str, str], options: list[NewOption] | None = None
    ) -> AttributeRecord:
        self._attribute_cache.pop(code, None)
        fields = {FIELD_COLUMNS[k]: v for k, v in data.items() if k in FIELD_COLUMNS}
        properties = {k: v for k, v in data.items() if k not in FIELD_COLUMNS}
        row = self._fetchone(
            "SELECT attribute_id FROM catalog_attribute WHERE entity_type = %s AND attribute_code = %s",
            (self._entity_type, code),
        )
        if row is None:
            # 列名は FIELD_COLUMNS の固定値のみ
            columns = ["entity_type", "attribute_code", *fields.keys(), "properties"]
            placeholders = ",".join(["%s"] * len(columns))
            inserted = self._fetchone(
                f"INSERT INTO catalog_attribute ({','.join(columns)}) VALUES ({placeholders}) RETURNING attribute_id",
                (self._entity_type, code, *fields.values(), Json(properties)),
            )
            attribute_id = int(inserted[0])  # type: ignore[index]
        else:
            attribute_id = int(row[0])
            assignments = [f"{column} = %s" for column in fields]
            assignments.append("properties = properties || %s")
            self._execute(
                f"UPDATE catalog_attribute SET {', '.join(assignments)} WHERE attribute_id = %s",
                (*fields.values(), Json(properties), attribute_id),
            )
        self._insert_options(attribute_id, options or [])
        saved = self.get_attribute(code)
        if saved is None:  # pragma: no cover - 直前に保存済み
            raise CatalogError(f"attribute '{code}' vanished after save")
        return saved

    def remove_attribute(self, code: str) -> None:
        self._attribute_cache.pop(code, None)
        self._execute(
            "DELETE FROM catalog_attribute WHERE entity_type = %s AND attribute_code = %s",
            (self._entity_type, code),
        )
        if self._cur.rowcount == 0:
            raise CatalogNotFound(f"The attribute with a \"{code}\" attributeCode doesn't exist.")

    def set_default_value(self, code: str, value: str) -> None:
        self._attribute_cache.pop(code, None)
        self._execute(
            "UPDATE catalog_attribute SET default_value = %s WHERE attribute_id = %s",
            (value, self._attribute_id(code)),
        )

    def set_store_labels(self, code: str, labels: list[StoreLabel]) -> None:
        self._attribute_cache.pop(code, None)
        attribute_id = self._attribute_id(code)
        self._execute("DELETE FROM catalog_attribute_label WHERE attribute_id = %s", (attribute_id,))
        self._insert(
            "catalog_attribute_label",
            ["attribute_id", "store_id", "label"],
            [(attribute_id, sl.store_id, sl.label) for sl in labels],
        )

    def clear_cache(self) -> None:
        self._attribute_cache.clear()

    # ---------------------------------------------------------------- options
    def list_options(self, code: str) -> list[OptionRecord]:
        attribute_id = self._attribute_id(code)
        rows = self._fetchall(
            "SELECT o.option_id, o.sort_order, v.store_id, v.value"
            " FROM catalog_attribute_option o"
            " LEFT JOIN catalog_attribute_option_value v ON v.option_id = o.option_id"
            " WHERE o.attribute_id = %s ORDER BY o.sort_order, o.option_id, v.store_id",
            (attribute_id,),
        )
        options: dict[int, OptionRecord] = {}
        for option_id, sort_order, store_id, value in rows:
            option = options.setdefault(int(option_id), OptionRecord(int(option_id), "", int(sort_order or 0)))
            if store_id is None:
                continue
            if int(store_id) == 0:
                option.label = value or ""
            else:
                option.store_labels.append(StoreLabel(int(store_id), value or ""))
        return list(options.values())

    def add_option(self, code: str, option: NewOption) -> int:
        option_ids = self._insert_options(self._attribute_id(code), [option])
        return option_ids[0]

    def delete_option(self, code: str, option_id: int) -> None:
        self._execute(
            "DELETE FROM catalog_attribute_option WHERE option_id = %s AND attribute_id = %s",
            (option_id, self._attribute_id(code)),
        )
        if self._cur.rowcount == 0:
            raise CatalogNotFound(f"The option with \"{option_id}\" ID doesn't exist.")

    # ----------------------------------------------------------------- stores
    def get_store_id(self, store_code: str) -> int | None:
        row = self._fetchone("SELECT store_id FROM store WHERE code = %s", (store_code,))
        return int(row[0]) if row is not None else None

    # ----------------------------------------------------- attribute sets/groups
    def default_attribute_set_id(self) -> int:
        found = self.get_attribute_set(self._default_set_name)
        if found is None:
            raise CatalogNotFound(f"default attribute set '{self._default_set_name}' not found")
        return found.attribute_set_id

    def get_attribute_set(self, name_or_id: str | int) -> AttributeSetRecord | None:
        if isinstance(name_or_id, int):
            row = self._fetchone(
                "SELECT attribute_set_id, attribute_set_name, sort_order FROM catalog_attribute_set"
                " WHERE entity_type = %s AND attribute_set_id = %s",
                (self._entity_type, name_or_id),
            )
        else:
            row = self._fetchone(
                "SELECT attribute_set_id, attribute_set_name, sort_order FROM catalog_attribute_set"
                " WHERE entity_type = %s AND lower(attribute_set_name) = lower(%s)",
                (self._entity_type, name_or_id.strip()),
            )
        if row is None:
            return None
        return AttributeSetRecord(int(row[0]), row[1], int(row[2] or 0))

    def create_attribute_set(self, name: str, sort_order: int | None, skeleton_set_id: int) -> int:
        row = self._fetchone(
            "INSERT INTO catalog_attribute_set (entity_type, attribute_set_name, sort_order)"
            " VALUES (%s, %s, %s) RETURNING attribute_set_id",
            (self._entity_type, name, sort_order or 0),
        )
        set_id = int(row[0])  # type: ignore[index]
        # skeleton のグループ構成を複製
        self._execute(
            "INSERT INTO catalog_attribute_group (attribute_set_id, attribute_group_name, sort_order, is_default)"
            " SELECT %s, attribute_group_name, sort_order, is_default FROM catalog_attribute_group"
            " WHERE attribute_set_id = %s",
            (set_id, skeleton_set_id),
        )
        return set_id

    def update_attribute_set_sort_order(self, set_id: int, sort_order: int) -> None:
        self._execute(
            "UPDATE catalog_attribute_set SET sort_order = %s WHERE attribute_set_id = %s",
            (sort_order, set_id),
        )

    def remove_attribute_set(self, set_id: int) -> None:
        self._execute("DELETE FROM catalog_attribute_set WHERE attribute_set_id = %s", (set_id,))
        if self._cur.rowcount == 0:
            raise CatalogNotFound(f"No such attribute set: {set_id}")

    def default_group_id(self, set_id: int) -> int:
        row = self._fetchone(
            "SELECT attribute_group_id FROM catalog_attribute_group WHERE attribute_set_id = %s"
            " ORDER BY is_default DESC, sort_order, attribute_group_id LIMIT 1",
            (set_id,),
        )
        if row is None:
            raise CatalogNotFound(f"Attribute set {set_id} has no groups")
        return int(row[0])

    def ensure_attribute_group(self, set_id: int, name: str, sort_order: int | None) -> int:
        row = self._fetchone(
            "SELECT attribute_group_id FROM catalog_attribute_group"
            " WHERE attribute_set_id = %s AND lower(attribute_group_name) = lower(%s)",
            (set_id, name),
        )
        if row is not None:
            if sort_order is not None:
                self._execute(
                    "UPDATE catalog_attribute_group SET sort_order = %s WHERE attribute_group_id = %s",
                    (sort_order, row[0]),
                )
            return int(row[0])
        inserted = self._fetchone(
            "INSERT INTO catalog_attribute_group (attribute_set_id, attribute_group_name, sort_order)"
            " VALUES (%s, %s, COALESCE(%s, (SELECT COALESCE(MAX(sort_order), 0) + 1"
            " FROM catalog_attribute_group WHERE attribute_set_id = %s)))"
            " RETURNING attribute_group_id",
            (set_id, name, sort_order, set_id),
        )
        return int(inserted[0])  # type: ignore[index]

    def add_attribute_to_set(self, code: str, set_id: int, group_id: int, sort_order: int | None) -> None:
        # sort_order 未指定 (NULL) の再割当では既存の並び順を保持
        self._execute(
            "INSERT INTO catalog_entity_attribute (attribute_set_id, attribute_group_id, attribute_id, sort_order)"
            " VALUES (%s, %s, %s, COALESCE(%s, 0))"
            " ON CONFLICT (attribute_set_id, attribute_id)"
            " DO UPDATE SET attribute_group_id = EXCLUDED.attribute_group_id,"
            " sort_order = COALESCE(%s, catalog_entity_attribute.sort_order)",
            (set_id, group_id, self._attribute_id(code), sort_order, sort_order),
        )
