from __future__ import annotations

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from attr_import.config.loader import ConfigError, _validate_config_schema

"""Unit tests for config validation error cases."""


def test_validate_config_schema_missing_schema_file():
    """Test that ConfigError is raised when schema file does not exist."""
    with patch("attr_import.config.loader.SCHEMA_PATH", Path("/nonexistent/schema.json")):
        with pytest.raises(ConfigError) as e:
            _validate_config_schema({})
        assert "config schema not found" in str(e.value)


def test_validate_config_schema_invalid_json_schema():
    """Test that ConfigError is raised when schema file contains invalid JSON."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
        f.write("{ invalid json }")
        f.flush()
        temp_path = Path(f.name)

    try:
        with patch("attr_import.config.loader.SCHEMA_PATH", temp_path):
            with pytest.raises(ConfigError) as e:
                _validate_config_schema({})
            assert "invalid schema file" in str(e.value)
    finally:
        temp_path.unlink()


def test_validate_config_schema_rejects_negative_store_id():
    with pytest.raises(ConfigError) as e:
        _validate_config_schema({"var_directory": "./var", "catalog": {"stores": {"de": -1}}})
    assert "config validation failed" in str(e.value)
