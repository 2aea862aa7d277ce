from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .error_record import ErrorRecord

"""Processing result models for the attribute importer.

- RowResult: per-row accumulator threaded through one row's pipeline
- ResultAccumulator: merges finished RowResults (run-level counters)
- ImportResult: immutable summary returned by the orchestrator
"""

__all__ = [
    "RowResult",
    "ResultAccumulator",
    "ImportResult",
]


@dataclass
class RowResult:
    """Counters, warnings and error records produced by a single CSV row.

    Created fresh for each row and merged into the run totals once the row
    has been processed; nothing is shared between rows.
    """
    row_number: int  # CSV 行番号 (ヘッダ = 1)
    entity: str  # attribute_code / attribute set 名
    added: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: int = 0
    warnings: list[str] = field(default_factory=list)
    error_records: list[ErrorRecord] = field(default_factory=list)


class ResultAccumulator:
    """Run-level counters built by merging RowResults."""

    def __init__(self) -> None:
        self.rows = 0
        self.added = 0
        self.updated = 0
        self.deleted = 0
        self.skipped = 0
        self.errors = 0
        self.warnings: list[str] = []
        self.error_records: list[ErrorRecord] = []

    def merge(self, row: RowResult) -> None:
        self.rows += 1
        self.added += row.added
        self.updated += row.updated
        self.deleted += row.deleted
        self.skipped += row.skipped
        self.errors += row.errors
        self.warnings.extend(row.warnings)
        self.error_records.extend(row.error_records)

    def build(self, start_time: datetime, end_time: datetime) -> ImportResult:
        return ImportResult(
            rows=self.rows,
            added=self.added,
            updated=self.updated,
            deleted=self.deleted,
            skipped=self.skipped,
            errors=self.errors,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=(end_time - start_time).total_seconds(),
            warnings=list(self.warnings),
        )


@dataclass(frozen=True)
class ImportResult:
    """Aggregated results for one import run (SUMMARY line source)."""
    rows: int  # 処理したデータ行数 (空行除く)
    added: int
    updated: int
    deleted: int
    skipped: int
    errors: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    warnings: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.errors == 0
