# Shared pytest fixtures
from __future__ import annotations

import os
import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest

from attr_import.csvio.reader import CsvRow, HeaderMap
from attr_import.db.memory import InMemoryCatalog
from attr_import.models.processing_result import RowResult
from attr_import.services.context import RowContext
from attr_import.services.store_resolver import StoreResolver

STORES = {"de": 1, "fr": 2}


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "var").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """var_directory: ./var
catalog:
  entity_type: catalog_product
  admin_store_code: admin
  default_attribute_set: Default
  stores:
    de: 1
    fr: 2
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def write_csv(temp_workdir: Path) -> Callable[..., Path]:
    """Write ``content`` to var/<name> and return the path."""
    def _write(content: str, name: str = "attributes.csv") -> Path:
        path = temp_workdir / "var" / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture()
def mock_mode(monkeypatch) -> None:
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")


@pytest.fixture()
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog(dict(STORES))


@pytest.fixture()
def make_ctx(catalog: InMemoryCatalog) -> Callable[..., RowContext]:
    """Build a RowContext for a single data row (line 2)."""
    def _make(header: list[str], cells: list[str], *, verbose: bool = False, line: int = 2) -> RowContext:
        header_map = HeaderMap(header)
        row = CsvRow(line, cells, header_map)
        entity = row.cell("attribute_code") or row.cell("attribute_set")
        return RowContext(
            row=row,
            catalog=catalog,
            stores=StoreResolver(catalog),
            result=RowResult(row_number=line, entity=entity),
            file_name="attributes.csv",
            verbose=verbose,
        )
    return _make


@pytest.fixture(autouse=True)
def _clear_db_env(monkeypatch):
    # 開発者環境の接続情報がテストに混入しないように
    for name in ("DATABASE_URL", "PGDSN", "DISABLE_DB_CONNECT"):
        if name in os.environ:
            monkeypatch.delenv(name)
