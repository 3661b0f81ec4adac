"""Scraper for chemistwarehouse.com.au product pages."""

from __future__ import annotations

import re
from typing import Optional, Union

import requests
from bs4 import BeautifulSoup

from ..models import Product
from .base import USER_AGENT, Store, StoreError

_PRICE_RE = re.compile(
    r'"price"\s*:\s*\{\s*"value"\s*:\s*\{\s*"amount"\s*:\s*([\d.]+)'
)
_RRP_RE = re.compile(r'"rrp"\s*:\s*\{\s*"amount"\s*:\s*([\d.]+)')

_PRICE_SELECTORS = (
    "span.product__price",
    "span.Price",
    "span[class*='price']",
    ".product-price .price",
    ".price-amount",
)
_IMAGE_SELECTOR = "img.product-image, img.product__image, .product-image img"
_TIMEOUT = 30


def parse_price(text: str) -> float:
    """Read a price such as "$18.50" or "1,234.50"; raise ValueError if there is none."""
    cleaned = text.strip().replace("$", "").replace(",", "").strip()
    if not cleaned:
        raise ValueError("empty price string")
    if "_" in cleaned:
        raise ValueError(f"invalid price: {text!r}")
    return float(cleaned)


def _attr(soup: BeautifulSoup, selector: str, attribute: str) -> str:
    element = soup.select_one(selector)
    if element is None:
        return ""
    value = element.get(attribute)
    return value if isinstance(value, str) else ""


def _first_number(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1) if match else None


class ChemistWarehouse(Store):
    """Chemist Warehouse, whose prices sit in JSON embedded in the page."""

    name = "Chemist Warehouse"

    def matches(self, url: str) -> bool:
        return "chemistwarehouse.com.au" in url.lower()

    def get_product(self, url: str) -> Product:
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }
        try:
            response = requests.get(url, headers=headers, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            raise StoreError(f"fetch page: {exc}") from exc
        if response.status_code != 200:
            raise StoreError(f"unexpected status: {response.status_code}")
        return self.parse_page(response.content.decode("utf-8", errors="replace"))

    def parse_page(self, html: Union[str, bytes]) -> Product:
        """Extract the product from the page's HTML."""
        if isinstance(html, bytes):
            html = html.decode("utf-8", errors="replace")
        soup = BeautifulSoup(html, "html.parser")

        name = self._find_name(soup)
        price = self._find_price(soup, html)

        image_url = _attr(soup, 'meta[property="og:image"]', "content")
        if not image_url:
            image_url = _attr(soup, _IMAGE_SELECTOR, "src")

        return Product(name=name, price=price, image_url=image_url)

    @staticmethod
    def _find_name(soup: BeautifulSoup) -> str:
        heading = soup.find("h1")
        name = heading.get_text().strip() if heading is not None else ""
        if not name:
            title = _attr(soup, 'meta[property="og:title"]', "content").strip()
            cut = title.find(" online at ")
            if cut > 0:
                title = title[:cut]
            if title.startswith("Buy "):
                title = title[4:]
            name = title
        if not name:
            raise StoreError("could not find product name")
        return name

    @staticmethod
    def _find_price(soup: BeautifulSoup, html: str) -> float:
        price = 0.0

        embedded = _first_number(_PRICE_RE, html)
        if embedded is not None:
            try:
                price = float(embedded)
            except ValueError as exc:
                raise StoreError(f"parse embedded price {embedded!r}: {exc}") from exc

        if price == 0:
            rrp = _first_number(_RRP_RE, html)
            if rrp is not None:
                try:
                    price = float(rrp)
                except ValueError:
                    price = 0.0

        if price == 0:
            text = next(
                (
                    found
                    for selector in _PRICE_SELECTORS
                    if (element := soup.select_one(selector)) is not None
                    and (found := element.get_text().strip())
                ),
                "",
            )
            if not text:
                text = _attr(soup, 'meta[property="product:price:amount"]', "content")
            if text:
                try:
                    price = parse_price(text)
                except ValueError as exc:
                    raise StoreError(f"parse price {text!r}: {exc}") from exc

        if price == 0:
            raise StoreError("could not find product price")
        return price