"""Domain models for the catalog attribute importer."""

from .columns import ClassifiedColumn, ColumnKind, classify_column
from .error_record import ErrorRecord
from .import_options import Behavior, ImportType
from .processing_result import ImportResult, ResultAccumulator, RowResult

__all__ = [
    # Header classification
    "ClassifiedColumn",
    "ColumnKind",
    "classify_column",
    # CLI selections
    "Behavior",
    "ImportType",
    # Processing models
    "ErrorRecord",
    "ImportResult",
    "ResultAccumulator",
    "RowResult",
]
