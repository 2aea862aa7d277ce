from __future__ import annotations

import json

import pytest

from attr_import.models.error_record import ErrorRecord

"""Unit tests for ErrorRecord model."""

KEYS = {"timestamp", "file", "row", "entity", "error_type", "message"}


def test_error_record_row_minus_one_support():
    """row=-1 is accepted for run-level errors."""
    rec = ErrorRecord.create(
        file="attributes.csv",
        row=-1,
        entity="",
        error_type="RUN_LEVEL_FATAL",
        message="database connection failed",
    )

    assert rec.row == -1
    data = json.loads(rec.to_json_line())
    assert data["row"] == -1
    assert data["timestamp"].endswith("Z")
    assert set(data.keys()) == KEYS


def test_error_record_row_level():
    rec = ErrorRecord.create("attributes.csv", 7, "color", "OPTION_ADD_ERROR", "duplicate key")
    data = json.loads(rec.to_json_line())
    assert data["row"] == 7
    assert data["entity"] == "color"
    assert data["error_type"] == "OPTION_ADD_ERROR"
    assert data["message"] == "duplicate key"


def test_error_record_non_ascii_message_kept():
    rec = ErrorRecord.create("attributes.csv", 2, "farbe", "ATTRIBUTE_SAVE_ERROR", "ungültig")
    assert "ungültig" in rec.to_json_line()


def test_error_record_immutable():
    rec = ErrorRecord.create("attributes.csv", 2, "color", "X", "y")
    with pytest.raises(AttributeError):
        rec.row = 3
