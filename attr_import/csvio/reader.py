from __future__ import annotations

import csv
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

from attr_import.models.columns import ClassifiedColumn, ColumnKind, classify_column

"""CSV reader / shape validation.

- 1行目をヘッダ行として扱い、2行目以降をデータ行。
- ヘッダ名は trim + 小文字化して照合 (重複時は先勝ち)。
- 全セルが空白のみの行はどこでもスキップ (不正行としても数えない)。
- 行番号はファイル上のレコード番号 (ヘッダ = 1)。
"""

LIST_SEPARATOR = ";"


class CsvReadError(Exception):
    """Raised when the CSV file cannot be opened, decoded or lexed."""

class CsvShapeError(Exception):
    """Raised when the CSV grid fails shape validation (header / column counts)."""


@dataclass(frozen=True)
class CsvTable:
    path: Path
    rows: list[list[str]]  # rows[0] がヘッダ

    @property
    def header(self) -> list[str]:
        return self.rows[0] if self.rows else []

    def data_rows(self) -> Iterator[tuple[int, list[str]]]:
        """Yield ``(line_number, cells)`` for every non-blank data row (lazy)."""
        for index, cells in enumerate(self.rows[1:], start=2):
            if is_blank_row(cells):
                continue
            yield index, cells


class HeaderMap:
    """Case-insensitive, trimmed column name -> index lookup."""

    def __init__(self, header: Sequence[str]) -> None:
        self._index: dict[str, int] = {}
        for index, name in enumerate(header):
            key = normalize_header_key(name)
            if key != "" and key not in self._index:
                self._index[key] = index

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_header_key(name) in self._index

    def __len__(self) -> int:
        return len(self._index)

    def index(self, name: str) -> int | None:
        return self._index.get(normalize_header_key(name))

    def names(self) -> list[str]:
        return list(self._index)

    @cached_property
    def columns(self) -> list[ClassifiedColumn]:
        # 列分類はヘッダ単位で1回だけ計算
        return [classify_column(name, index) for name, index in self._index.items()]

    def of_kind(self, kind: ColumnKind) -> list[ClassifiedColumn]:
        return [c for c in self.columns if c.kind is kind]


class CsvRow:
    """Logical view of one data row addressed by header name."""

    def __init__(self, line_number: int, cells: Sequence[str], header_map: HeaderMap) -> None:
        self.line_number = line_number
        self.cells = list(cells)
        self.header_map = header_map

    def cell(self, name: str) -> str:
        return read_cell(self.cells, self.header_map, name)

    def cell_at(self, index: int) -> str:
        return self.cells[index].strip() if index < len(self.cells) else ""

    def values(self, name: str) -> list[str]:
        return parse_list(self.cell(name))

    def positional(self, name: str) -> list[str]:
        return split_positional(self.cell(name))

    def __repr__(self) -> str:  # pragma: no cover
        return f"CsvRow(line={self.line_number}, cells={self.cells!r})"


def normalize_header_key(name: object) -> str:
    return str(name if name is not None else "").strip().lower()


def is_blank_row(cells: Sequence[str]) -> bool:
    return all(str(c).strip() == "" for c in cells)


def read_csv_table(path: Path) -> CsvTable:
    """Read a comma-delimited, double-quote enclosed UTF-8 CSV into a grid.

    Parameters
    ----------
    path: CSV ファイルパス (解決済み)
    """
    try:
        with path.open("r", newline="", encoding="utf-8-sig") as f:
            rows = [list(r) for r in csv.reader(f, delimiter=",", quotechar='"')]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise CsvReadError(f"An error occurred while reading the CSV file '{path}': {e}") from e
    return CsvTable(path=path, rows=rows)


def validate_table(table: CsvTable) -> None:
    """Validate high-level CSV shape.

    Rules (in order):
    1. empty file
    2. blank / whitespace-only header
    3. header row only
    4. every non-blank row has the header's column count
    """
    if not table.rows:
        raise CsvShapeError("The CSV file is empty")
    header = table.header
    if is_blank_row(header):
        raise CsvShapeError("The CSV file header is empty or contains only whitespace")
    if len(table.rows) <= 1:
        raise CsvShapeError("The CSV file contains only the header row")
    header_count = len(header)
    for line, cells in enumerate(table.rows[1:], start=2):
        if is_blank_row(cells):
            continue
        if len(cells) != header_count:
            raise CsvShapeError(
                f"The CSV file has a row on line {line} with {len(cells)} columns, "
                f"but the header has {header_count} columns"
            )


def build_header_map(header: Sequence[str]) -> HeaderMap:
    return HeaderMap(header)


def read_cell(cells: Sequence[str], header_map: HeaderMap, name: str) -> str:
    """Read a cell by header name, trimmed; ``""`` when the column or cell is missing."""
    index = header_map.index(name)
    if index is None or index >= len(cells):
        return ""
    return str(cells[index]).strip()


def parse_list(cell: str) -> list[str]:
    """Split a ``;`` list into non-empty trimmed values."""
    return [v for v in split_positional(cell) if v != ""]


def split_positional(cell: str) -> list[str]:
    """Split a ``;`` list keeping empty slots, so values stay index-aligned."""
    if cell.strip() == "":
        return []
    return [v.strip() for v in cell.split(LIST_SEPARATOR)]
