from __future__ import annotations

from ..models.import_options import Behavior, ImportType
from ..models.processing_result import ImportResult

"""SUMMARY line rendering.

Format:
SUMMARY type={type} behavior={behavior} rows={rows} added={added}
updated={updated} deleted={deleted} skipped={skipped} errors={errors}
elapsed_sec={elapsed}
"""


def format_elapsed(seconds: float) -> str:
    # 整数値は小数点なし、極小値は指数表記を避ける
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return str(round(seconds, 3))


def render_summary_line(import_type: ImportType, behavior: Behavior, result: ImportResult) -> str:
    """Render the SUMMARY line for one run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2025, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2025, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = ImportResult(rows=3, added=1, updated=1, deleted=0, skipped=1, errors=0,
        ...     start_time=start, end_time=end, elapsed_seconds=2.0)
        >>> render_summary_line(ImportType.ATTRIBUTE, Behavior.UPDATE, result)
        'SUMMARY type=attribute behavior=update rows=3 added=1 updated=1 deleted=0 skipped=1 errors=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY type={import_type.value} "
        f"behavior={behavior.value} "
        f"rows={result.rows} "
        f"added={result.added} "
        f"updated={result.updated} "
        f"deleted={result.deleted} "
        f"skipped={result.skipped} "
        f"errors={result.errors} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )
