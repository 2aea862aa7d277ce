from __future__ import annotations

import json
import re
from pathlib import Path

from attr_import.logging.error_log import ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "file", "row", "entity", "error_type", "message"}


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("attributes.csv", 2, "color", "OPTION_ADD_ERROR", "dup"))
    buf.extend([ErrorRecord.create("attributes.csv", 3, "size", "ATTRIBUTE_SAVE_ERROR", "denied")])
    path = buf.flush()

    assert path is not None and path.exists()
    assert path.parent.name == "logs"
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw).keys()) == KEYS
    # flush 後バッファクリア
    assert len(buf) == 0


def test_error_log_buffer_no_records_no_file(temp_workdir: Path):
    buf = ErrorLogBuffer()
    assert buf.flush() is None
    assert list((temp_workdir / "logs").iterdir()) == []


def test_error_log_buffer_multiple_flushes_append(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("a.csv", 2, "color", "OPTION_ADD_ERROR", "dup"))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(ErrorRecord.create("a.csv", 3, "color", "OPTION_ADD_ERROR", "dup2"))
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1
