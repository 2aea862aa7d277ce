from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config/import.yml
- Validate against config_schema.json (additionalProperties: false)
- Apply defaults for the catalog section
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

DEFAULT_ENTITY_TYPE = "catalog_product"
DEFAULT_ADMIN_STORE_CODE = "admin"
DEFAULT_ATTRIBUTE_SET_NAME = "Default"


class ConfigError(Exception):
    pass

@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None

@dataclass(frozen=True)
class CatalogConfig:
    entity_type: str = DEFAULT_ENTITY_TYPE
    admin_store_code: str = DEFAULT_ADMIN_STORE_CODE
    default_attribute_set: str = DEFAULT_ATTRIBUTE_SET_NAME
    stores: dict[str, int] = field(default_factory=dict)  # mock モード用の store code -> id

@dataclass(frozen=True)
class ImportConfig:
    var_directory: str
    catalog: CatalogConfig
    database: DatabaseConfig


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: schema file missing / invalid, or the data violates the schema
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    catalog_raw = data.get("catalog") or {}
    catalog = CatalogConfig(
        entity_type=catalog_raw.get("entity_type", DEFAULT_ENTITY_TYPE),
        admin_store_code=catalog_raw.get("admin_store_code", DEFAULT_ADMIN_STORE_CODE),
        default_attribute_set=catalog_raw.get("default_attribute_set", DEFAULT_ATTRIBUTE_SET_NAME),
        stores=dict(catalog_raw.get("stores") or {}),
    )
    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        var_directory=data["var_directory"],
        catalog=catalog,
        database=db,
    )
