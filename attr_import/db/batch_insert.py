from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""DB batch insert helper.

psycopg2.extras.execute_values を用いたバッチ INSERT。
属性新規作成時に埋め込まれたオプション (option 行 / store 別ラベル行) を
まとめて投入する用途で PostgresCatalog から呼ばれる。
"""


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: Sequence[str] | None = None,
    page_size: int = 1000,
) -> InsertResult:
    """Perform batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: 対象テーブル名 (固定値のみ、外部入力は渡さない)
    columns: 挿入列
    rows: 行シーケンス
    returning: RETURNING 句に含める列 (生成 ID の取得用途)。None なら RETURNING なし
    page_size: execute_values の page_size
    """

    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if returning:
        sql += " RETURNING " + ",".join(f'"{c}"' for c in returning)

    try:
        # fetch=True で全ページ分の RETURNING 結果を取得 (入力順)
        returned = execute_values(cursor, sql, rows_list, page_size=page_size, fetch=bool(returning))
    except Exception as e:
        raise BatchInsertError(str(e)) from e

    return InsertResult(
        inserted_rows=len(rows_list),
        returned_values=[tuple(r) for r in returned] if returning else None,
    )
