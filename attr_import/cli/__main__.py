from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

from attr_import.config.loader import ConfigError, ImportConfig, load_config
from attr_import.csvio.reader import (
    CsvReadError,
    CsvShapeError,
    CsvTable,
    build_header_map,
    read_csv_table,
    validate_table,
)
from attr_import.db.catalog import CatalogError, CatalogStore
from attr_import.db.memory import InMemoryCatalog
from attr_import.logging.init import log_summary, set_debug, setup_logging
from attr_import.models.import_options import Behavior, ImportType
from attr_import.services.orchestrator import ProcessingError, process_import
from attr_import.services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- .env 読み込み (python-dotenv, override) → config/import.yml 読み込み
- --type / --behavior 検証
- CSV パスを var_directory 基準で解決し、読み込み + 形状検証
- catalog セッション (DISABLE_DB_CONNECT=1 なら in-memory) で process_import
- SUMMARY 出力と終了コード (0: 成功 / 1: 致命的 / 2: 行エラーあり)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

INSPECT_ROWS = 5


def _database_dsn(cfg: ImportConfig) -> str:
    """Resolve the PostgreSQL DSN.

    優先順位 (.env を最優先):
        1. `.env` で読み込まれた環境変数 (main() 冒頭で上書き済み)
           - DATABASE_URL / PGDSN があれば DSN 全体をそのまま使用
        2. config/import.yml の database.dsn
        3. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
           (不足分は database セクションでフォールバック)
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[object]:  # pragma: no cover (thin wrapper; tested via mocks)
    """Context manager to provide a psycopg2 cursor.

    autocommit: 行ごとの変更は即時確定 (行をまたぐトランザクションは張らない)
    """
    import psycopg2

    try:
        conn = psycopg2.connect(_database_dsn(cfg))
    except psycopg2.Error as e:
        raise CatalogError(f"database connection failed: {str(e).strip()}") from e
    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


@contextmanager
def _catalog_session(cfg: ImportConfig) -> Iterator[tuple[CatalogStore, str]]:
    """Yield ``(catalog, mode)``; mode is ``mock`` or ``live``.

    DB 接続制御: テスト等で完全に無効化したい場合 DISABLE_DB_CONNECT=1
    """
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        yield (
            InMemoryCatalog(
                cfg.catalog.stores,
                admin_store_code=cfg.catalog.admin_store_code,
                default_set_name=cfg.catalog.default_attribute_set,
            ),
            "mock",
        )
        return

    from attr_import.db.postgres import PostgresCatalog

    with _db_connection(cfg) as cur:
        yield (
            PostgresCatalog(
                cur,
                entity_type=cfg.catalog.entity_type,
                default_set_name=cfg.catalog.default_attribute_set,
            ),
            "live",
        )


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、PostgreSQL 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="attr-import",
        description="Imports catalog product attributes from a CSV file.",
    )
    p.add_argument("csv", help="Path to the CSV file relative to the configured var directory")
    # choices は使わず main() で検証 (エラーメッセージ / 終了コードを統一)
    p.add_argument("-t", "--type", default=ImportType.ATTRIBUTE.value,
                   help="Type of entity to import; attribute or attribute-set")
    p.add_argument("-b", "--behavior", default=Behavior.ADD.value,
                   help="Import behavior; add, update, or delete")
    p.add_argument("-v", "--verbose", action="store_true", help="Show verbose diagnostics")
    p.add_argument("--debug", action="store_true", help="Enable debug logging (implies --verbose)")
    p.add_argument("--inspect-data", action="store_true", help="Print header classification & first rows then exit")
    return p.parse_args(argv)


def _resolve_csv_path(cfg: ImportConfig, csv_arg: str) -> Path:
    path = Path(cfg.var_directory) / csv_arg.lstrip("/\\")
    return path.resolve() if path.exists() else path


def _inspect_data(table: CsvTable) -> int:
    header_map = build_header_map(table.header)
    print(f"FILE: {table.path.name}")
    for column in header_map.columns:
        scope = f" store={column.store_code}" if column.store_code else ""
        print(f"  COLUMN: {column.name} kind={column.kind.value}{scope}")
    rows = [cells for _, cells in table.data_rows()][:INSPECT_ROWS]
    frame = pd.DataFrame(rows, columns=[str(h).strip() for h in table.header])
    print(frame.to_string(index=False))
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # NOTE: 空リストが渡された場合に sys.argv[1:] (pytest の引数) が混入しないよう None のみ判定
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    config_path = Path("config/import.yml")
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    verbose = args.verbose or args.debug
    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    if args.type not in ImportType.values():
        logger.error(f"Invalid --type '{args.type}'; must be one of: {', '.join(ImportType.values())}")
        return EXIT_FATAL
    if args.behavior not in Behavior.values():
        logger.error(f"Invalid --behavior '{args.behavior}'; must be one of: {', '.join(Behavior.values())}")
        return EXIT_FATAL
    import_type = ImportType(args.type)
    behavior = Behavior(args.behavior)
    if import_type is ImportType.ATTRIBUTE_SET and behavior is not Behavior.DELETE:
        logger.error(f"Invalid --behavior '{behavior.value}' for type '{import_type.value}'; must be 'delete'")
        return EXIT_FATAL

    csv_path = _resolve_csv_path(cfg, args.csv)
    if not csv_path.is_file() or not os.access(csv_path, os.R_OK):
        logger.error(f"The CSV file '{csv_path}' does not exist or is not readable")
        return EXIT_FATAL
    try:
        table = read_csv_table(csv_path)
        validate_table(table)
    except (CsvReadError, CsvShapeError) as e:
        logger.error(str(e))
        return EXIT_FATAL
    logger.debug(f"csv={csv_path} rows={len(table.rows) - 1}")

    if args.inspect_data:
        return _inspect_data(table)

    try:
        with _catalog_session(cfg) as (catalog, db_mode):
            logger.debug(f"catalog mode={db_mode}")
            result = process_import(
                table,
                catalog,
                cfg,
                import_type=import_type,
                behavior=behavior,
                verbose=verbose,
            )
    except ProcessingError as e:
        logger.error(str(e))
        return EXIT_FATAL
    except CatalogError as e:
        logger.error(f"catalog: {e}")
        return EXIT_FATAL

    logger.info(f"mode={db_mode} rows={result.rows}")
    summary_line = render_summary_line(import_type, behavior, result)
    # log_summary が "SUMMARY " を付与するため接頭辞を除去
    log_summary(summary_line.removeprefix("SUMMARY "))

    return EXIT_SUCCESS_ALL if result.succeeded else EXIT_PARTIAL_FAILURE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
