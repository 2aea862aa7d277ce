from __future__ import annotations

from enum import Enum

"""Import type / behavior enums selected on the command line."""

__all__ = [
    "ImportType",
    "Behavior",
]


class ImportType(Enum):
    """Kind of entity the CSV describes.

    - ATTRIBUTE: one attribute definition per row (add/update/delete)
    - ATTRIBUTE_SET: attribute set names to delete
    """
    ATTRIBUTE = "attribute"
    ATTRIBUTE_SET = "attribute-set"

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]


class Behavior(Enum):
    """Row behavior.

    - ADD: create only; existing attributes are skipped
    - UPDATE: create-or-modify (upsert)
    - DELETE: remove existing attributes / attribute sets
    """
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]
