from __future__ import annotations

import logging
from datetime import UTC, datetime

from ..config.loader import ImportConfig
from ..csvio.reader import CsvRow, CsvTable, HeaderMap, build_header_map
from ..db.catalog import CatalogStore
from ..logging.error_log import ErrorLogBuffer
from ..models.import_options import Behavior, ImportType
from ..models.processing_result import ImportResult, ResultAccumulator, RowResult
from .attribute_reconciler import process_attribute_row
from .attribute_set_reconciler import collect_unique_set_names, delete_attribute_sets
from .context import RowContext
from .progress import ProgressTracker
from .store_resolver import StoreResolver

"""Import orchestration.

process_import() runs one validated CSV table against a CatalogStore:
1. 必須列チェック (attribute_code / attribute_set) → 欠落時 ProcessingError
2. 行を順番に処理 (並列なし、行をまたぐロールバックなし)
3. RowResult を集計し、行エラーは ErrorLogBuffer に蓄積
4. behavior 別の件数行を出力し、エラーログを1回だけ flush
"""

__all__ = [
    "ProcessingError",
    "process_import",
]

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Run-level validation failure (raised before any row is processed)."""
    pass


def _require_column(header_map: HeaderMap, column: str) -> None:
    if column not in header_map:
        raise ProcessingError(f"The CSV file is missing the '{column}' column")


def _record(acc: ResultAccumulator, error_log: ErrorLogBuffer, result: RowResult) -> None:
    acc.merge(result)
    error_log.extend(result.error_records)


def _process_attribute_rows(
    table: CsvTable,
    header_map: HeaderMap,
    catalog: CatalogStore,
    stores: StoreResolver,
    behavior: Behavior,
    acc: ResultAccumulator,
    error_log: ErrorLogBuffer,
    verbose: bool,
) -> None:
    rows = list(table.data_rows())
    with ProgressTracker(len(rows), description="Importing attributes") as progress:
        for line_number, cells in rows:
            row = CsvRow(line_number, cells, header_map)
            code = row.cell("attribute_code")
            progress.start_row(code)
            if code == "":
                progress.finish_row()
                continue
            result = RowResult(row_number=line_number, entity=code)
            ctx = RowContext(row, catalog, stores, result, file_name=table.path.name, verbose=verbose)
            try:
                process_attribute_row(ctx, behavior)
            except Exception as e:
                # 1行の想定外エラーで実行全体を止めない
                ctx.fail("ROW_PROCESSING_ERROR", f"An unexpected error occurred while processing attribute '{code}': {e}")
            _record(acc, error_log, result)
            progress.set_postfix(added=acc.added, updated=acc.updated, deleted=acc.deleted, errors=acc.errors)
            progress.finish_row()

    if behavior is Behavior.DELETE:
        logger.info(f"Deleted {acc.deleted} attribute(s)")
    elif behavior is Behavior.UPDATE:
        logger.info(f"Added {acc.added} attribute(s), updated {acc.updated} attribute(s)")
    else:
        logger.info(f"Added {acc.added} attribute(s)")


def _process_attribute_sets(
    table: CsvTable,
    header_map: HeaderMap,
    catalog: CatalogStore,
    stores: StoreResolver,
    config: ImportConfig,
    acc: ResultAccumulator,
    error_log: ErrorLogBuffer,
    verbose: bool,
) -> None:
    rows = [CsvRow(line_number, cells, header_map) for line_number, cells in table.data_rows()]
    targets = collect_unique_set_names(rows)
    results = delete_attribute_sets(
        targets,
        catalog,
        stores,
        file_name=table.path.name,
        default_set_name=config.catalog.default_attribute_set,
        verbose=verbose,
    )
    for result in results:
        _record(acc, error_log, result)
    logger.info(f"Deleted {acc.deleted} attribute set(s)")


def process_import(
    table: CsvTable,
    catalog: CatalogStore,
    config: ImportConfig,
    *,
    import_type: ImportType = ImportType.ATTRIBUTE,
    behavior: Behavior = Behavior.ADD,
    verbose: bool = False,
) -> ImportResult:
    """Process every data row of ``table`` and return the aggregated result.

    Args:
        table: shape-validated CSV table
        catalog: persistence collaborator (InMemoryCatalog in mock mode)
        config: loaded import configuration
        import_type: attribute rows or attribute-set deletion
        behavior: add / update / delete (attribute-set accepts delete only)
        verbose: emit verbose-gated diagnostics

    Raises:
        ProcessingError: required column missing or invalid type/behavior pair
    """
    start_time = datetime.now(UTC)
    header_map = build_header_map(table.header)
    if import_type is ImportType.ATTRIBUTE_SET:
        if behavior is not Behavior.DELETE:
            raise ProcessingError(
                f"Invalid --behavior '{behavior.value}' for type '{import_type.value}'; must be 'delete'"
            )
        _require_column(header_map, "attribute_set")
    else:
        _require_column(header_map, "attribute_code")

    error_log = ErrorLogBuffer()
    stores = StoreResolver(catalog, config.catalog.admin_store_code)
    acc = ResultAccumulator()

    if import_type is ImportType.ATTRIBUTE_SET:
        _process_attribute_sets(table, header_map, catalog, stores, config, acc, error_log, verbose)
    else:
        _process_attribute_rows(table, header_map, catalog, stores, behavior, acc, error_log, verbose)

    if acc.errors > 0:
        logger.error(f"{acc.errors} error(s) occurred during import")

    # エラーログは実行終了時に1回だけ書き出す
    try:
        log_path = error_log.flush()
    except OSError as e:
        logger.warning(f"failed to write error log: {e}")
    else:
        if log_path is not None:
            logger.info(f"error log written: {log_path}")

    end_time = datetime.now(UTC)
    return acc.build(start_time, end_time)
