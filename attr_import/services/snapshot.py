from __future__ import annotations

from ..db.catalog import AttributeRecord, CatalogError, CatalogNotFound, CatalogStore, OptionRecord

"""Lazy read-through view of a stored attribute (one row only)."""

__all__ = [
    "ExistingAttributeSnapshot",
]


class ExistingAttributeSnapshot:
    """Current input type, default value, default label and options of an attribute.

    The record and the option list are each fetched at most once, and only on
    first access. A failed fetch is remembered and re-raised on every later
    access so that each dependent step can report it.
    """

    def __init__(self, catalog: CatalogStore, attribute_code: str) -> None:
        self._catalog = catalog
        self._code = attribute_code
        self._record: AttributeRecord | None = None
        self._record_error: CatalogError | None = None
        self._record_loaded = False
        self._options: list[OptionRecord] | None = None
        self._options_error: CatalogError | None = None

    def _load(self) -> AttributeRecord:
        if not self._record_loaded:
            self._record_loaded = True
            try:
                self._record = self._catalog.get_attribute(self._code)
            except CatalogError as e:
                self._record_error = e
            else:
                if self._record is None:
                    self._record_error = CatalogNotFound(
                        f"The attribute with a \"{self._code}\" attributeCode doesn't exist."
                    )
        if self._record_error is not None:
            raise self._record_error
        assert self._record is not None
        return self._record

    @property
    def frontend_input(self) -> str:
        return self._load().frontend_input

    @property
    def default_value(self) -> str:
        return self._load().default_value

    @property
    def default_label(self) -> str:
        return self._load().frontend_label

    @property
    def options(self) -> list[OptionRecord]:
        if self._options is None and self._options_error is None:
            try:
                self._options = self._catalog.list_options(self._code)
            except CatalogError as e:
                self._options_error = e
        if self._options_error is not None:
            raise self._options_error
        return list(self._options or [])
