from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Header column classification.

Every (normalized) header name maps to exactly one kind:
- SCALAR: copied into the attribute-definition payload
- STORE_LABEL: ``label_{storeCode}`` store-scoped frontend label
- STORE_OPTION: ``option_{storeCode}`` store-scoped option labels
- RESERVED: structural columns consumed elsewhere in the row pipeline
"""

__all__ = [
    "ColumnKind",
    "ClassifiedColumn",
    "RESERVED_COLUMNS",
    "classify_column",
]

LABEL_PREFIX = "label_"
OPTION_PREFIX = "option_"

# option_{storeCode} と衝突する予約名
OPTION_SETTING_COLUMNS = frozenset({"option_order", "option_strategy"})

RESERVED_COLUMNS = frozenset({
    "attribute_code",
    "attribute_set",
    "attribute_set_order",
    "group",
    "group_order",
    "option",
}) | OPTION_SETTING_COLUMNS


class ColumnKind(Enum):
    SCALAR = "scalar"
    STORE_LABEL = "store_label"
    STORE_OPTION = "store_option"
    RESERVED = "reserved"


@dataclass(frozen=True)
class ClassifiedColumn:
    name: str  # 正規化済み列名 (小文字)
    index: int
    kind: ColumnKind
    store_code: str | None = None


def classify_column(name: str, index: int) -> ClassifiedColumn:
    """Classify a normalized header name."""
    if name in RESERVED_COLUMNS:
        return ClassifiedColumn(name, index, ColumnKind.RESERVED)
    if name.startswith(LABEL_PREFIX):
        store_code = name[len(LABEL_PREFIX):]
        if not store_code:
            return ClassifiedColumn(name, index, ColumnKind.RESERVED)
        return ClassifiedColumn(name, index, ColumnKind.STORE_LABEL, store_code)
    if name.startswith(OPTION_PREFIX):
        store_code = name[len(OPTION_PREFIX):]
        if not store_code:
            return ClassifiedColumn(name, index, ColumnKind.RESERVED)
        return ClassifiedColumn(name, index, ColumnKind.STORE_OPTION, store_code)
    return ClassifiedColumn(name, index, ColumnKind.SCALAR)
