"""The list of known retailers and lookup of the one that serves a URL."""

from __future__ import annotations

from .base import Store, StoreError
from .chemistwarehouse import ChemistWarehouse
from .iherb import IHerb
from .woolworths import Woolworths


class UnsupportedStoreError(StoreError):
    """Raised when no known retailer serves a URL."""


_registry: list[Store] = []


def register(store: Store) -> None:
    """Add a retailer; earlier registrations take precedence."""
    _registry.append(store)


def detect(url: str) -> Store:
    """Return the first registered retailer that serves the URL."""
    for store in _registry:
        if store.matches(url):
            return store
    raise UnsupportedStoreError(f"unsupported store for URL: {url}")


register(ChemistWarehouse())
register(Woolworths())
register(IHerb())