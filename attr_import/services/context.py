from __future__ import annotations

import logging
from dataclasses import dataclass

from ..csvio.reader import CsvRow
from ..db.catalog import CatalogStore
from ..models.error_record import ErrorRecord
from ..models.processing_result import RowResult
from .store_resolver import StoreResolver

"""Row pipeline context.

RowContext は1行分の処理で共有する状態 (行データ / catalog / store 解決 /
RowResult) をまとめて明示的に受け渡すためのもの。行をまたいで使い回さない。
"""

__all__ = [
    "RowContext",
]

logger = logging.getLogger(__name__)


@dataclass
class RowContext:
    row: CsvRow
    catalog: CatalogStore
    stores: StoreResolver
    result: RowResult
    file_name: str
    verbose: bool = False

    @property
    def code(self) -> str:
        """attribute_code (set 削除モードでは attribute set 名)."""
        return self.result.entity

    def notice(self, message: str) -> None:
        """Verbose-only diagnostic (merges, fallbacks, store misses, de-dup)."""
        if not self.verbose:
            return
        logger.warning(message)
        self.result.warnings.append(message)

    def warn(self, message: str) -> None:
        """Always-on, non-fatal warning."""
        logger.warning(message)
        self.result.warnings.append(message)

    def fail(self, error_type: str, message: str) -> None:
        """Record a row-level error; the caller continues with the next step."""
        logger.error(message)
        self.result.errors += 1
        self.result.error_records.append(
            ErrorRecord.create(
                file=self.file_name,
                row=self.row.line_number,
                entity=self.code,
                error_type=error_type,
                message=message,
            )
        )
