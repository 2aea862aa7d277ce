from __future__ import annotations

from ..db.catalog import ADMIN_STORE_ID, CatalogStore

"""Store code -> store id resolution with a run-scoped cache."""

__all__ = [
    "StoreResolver",
]


class StoreResolver:
    """Resolve store codes lazily; misses are cached as ``None``.

    One instance is owned by an import run and never invalidated mid-run.
    """

    def __init__(self, catalog: CatalogStore, admin_store_code: str = "admin") -> None:
        self._catalog = catalog
        self._admin_store_code = admin_store_code
        self._cache: dict[str, int | None] = {}

    def resolve(self, store_code: str) -> int | None:
        if store_code == self._admin_store_code:
            return ADMIN_STORE_ID
        if store_code in self._cache:
            return self._cache[store_code]
        store_id = self._catalog.get_store_id(store_code)
        self._cache[store_code] = store_id
        return store_id

    @property
    def cached_codes(self) -> list[str]:
        return list(self._cache)
