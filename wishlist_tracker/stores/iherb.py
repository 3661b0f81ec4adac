"""Scraper for iherb.com product pages, read from their JSON-LD data."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import requests
from bs4 import BeautifulSoup

from ..models import Product
from .base import USER_AGENT, Store, StoreError

_TIMEOUT = 20


@dataclass(frozen=True)
class _LinkedProduct:
    name: str
    image: str
    price: str


def _field(data: Mapping[str, Any], key: str) -> Any:
    """Find a JSON field by name, preferring an exact match over a case-insensitive one."""
    if key in data:
        return data[key]
    folded = key.casefold()
    return next(
        (value for name, value in data.items() if isinstance(name, str) and name.casefold() == folded),
        None,
    )


def _optional_text(data: Mapping[str, Any], key: str) -> Optional[str]:
    """Return the string field, "" when absent, or None when it has another type."""
    value = _field(data, key)
    if value is None:
        return ""
    return value if isinstance(value, str) else None


def _linked_product(text: str) -> Optional[_LinkedProduct]:
    """Decode one JSON-LD block; return it only if it describes a named product."""
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if not isinstance(data, Mapping):
        return None

    kind = _optional_text(data, "@type")
    name = _optional_text(data, "name")
    image = _optional_text(data, "image")
    if kind is None or name is None or image is None:
        return None

    offers = _field(data, "offers")
    if offers is None:
        offers = {}
    if not isinstance(offers, Mapping):
        return None
    price = _optional_text(offers, "price")
    currency = _optional_text(offers, "priceCurrency")
    if price is None or currency is None:
        return None

    if kind != "Product" or not name:
        return None
    return _LinkedProduct(name=name, image=image, price=price)


def _parse_float(text: str) -> float:
    if text != text.strip() or "_" in text:
        raise ValueError(f"invalid syntax: {text!r}")
    return float(text)


class IHerb(Store):
    """iHerb, on any of its regional domains."""

    name = "iHerb"

    def matches(self, url: str) -> bool:
        return "iherb.com" in url.lower()

    def get_product(self, url: str) -> Product:
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }
        try:
            response = requests.get(url, headers=headers, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            raise StoreError(f"fetch page: {exc}") from exc
        if response.status_code != 200:
            raise StoreError(f"unexpected status: {response.status_code}")
        return self.parse_page(response.content)

    def parse_page(self, html: Union[str, bytes]) -> Product:
        """Extract the product from the page's HTML."""
        if isinstance(html, bytes):
            html = html.decode("utf-8", errors="replace")
        soup = BeautifulSoup(html, "html.parser")

        found = next(
            (
                linked
                for script in soup.select('script[type="application/ld+json"]')
                if (linked := _linked_product(script.string or "")) is not None
            ),
            None,
        )
        if found is None:
            raise StoreError("could not find product JSON-LD data")

        quoted = json.dumps(found.price, ensure_ascii=False)
        try:
            price = _parse_float(found.price)
        except ValueError as exc:
            raise StoreError(f"could not parse price {quoted}: {exc}") from exc
        if price == 0:
            raise StoreError(f"could not parse price {quoted}")

        image_url = found.image
        meta = soup.select_one('meta[property="og:image"]')
        if meta is not None:
            content = meta.get("content")
            if isinstance(content, str) and content:
                image_url = content

        return Product(name=found.name, price=price, image_url=image_url)