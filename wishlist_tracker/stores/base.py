"""The interface every retailer scraper implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from ..models import Product

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class StoreError(Exception):
    """Raised when a product page cannot be fetched or understood."""


class Store(ABC):
    """A retailer whose product pages can be scraped."""

    name: ClassVar[str] = ""

    @abstractmethod
    def matches(self, url: str) -> bool:
        """Tell whether the URL belongs to this retailer."""

    @abstractmethod
    def get_product(self, url: str) -> Product:
        """Fetch the product page and return its name, price and image."""