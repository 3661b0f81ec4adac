"""Product lookups on woolworths.com.au through its JSON product API."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

import requests

from ..models import Product
from .base import USER_AGENT, Store, StoreError

BASE_URL = "https://www.woolworths.com.au"
API_PATH = "/apis/ui/product/detail/"
_TIMEOUT = 20
_STOCKCODE_RE = re.compile(r"/productdetails/(\d+)")


def extract_stockcode(url: str) -> str:
    """Return the numeric product id found in a product URL."""
    match = _STOCKCODE_RE.search(url)
    if match is None:
        raise StoreError(f"could not extract stockcode from URL: {url}")
    return match.group(1)


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    """Find a JSON field by name, preferring an exact match over a case-insensitive one."""
    if key in data:
        return data[key]
    folded = key.casefold()
    return next(
        (value for name, value in data.items() if isinstance(name, str) and name.casefold() == folded),
        None,
    )


def _text(data: Mapping[str, Any], key: str) -> str:
    value = _lookup(data, key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise StoreError(f"decode api response: {key} is not a string")
    return value


def _number(data: Mapping[str, Any], key: str) -> float:
    value = _lookup(data, key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StoreError(f"decode api response: {key} is not a number")
    return float(value)


def _flag(data: Mapping[str, Any], key: str) -> bool:
    value = _lookup(data, key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise StoreError(f"decode api response: {key} is not a boolean")
    return value


class Woolworths(Store):
    """Woolworths, queried through its product detail API after a warm-up visit."""

    name = "Woolworths"

    def matches(self, url: str) -> bool:
        return "woolworths.com.au" in url.lower()

    def get_product(self, url: str) -> Product:
        stockcode = extract_stockcode(url)
        with requests.Session() as session:
            try:
                warmup = session.get(
                    BASE_URL + "/",
                    headers={"User-Agent": USER_AGENT, "Accept": "text/html,*/*"},
                    timeout=_TIMEOUT,
                )
                warmup.content  # drain the body so the session cookies are kept
            except requests.RequestException as exc:
                raise StoreError(f"init client: warmup request: {exc}") from exc

            headers = {
                "User-Agent": USER_AGENT,
                "Accept": "application/json, text/plain, */*",
                "Referer": f"{BASE_URL}/shop/productdetails/{stockcode}",
            }
            try:
                response = session.get(BASE_URL + API_PATH + stockcode, headers=headers, timeout=_TIMEOUT)
            except requests.RequestException as exc:
                raise StoreError(f"api request: {exc}") from exc

            if response.status_code != 200:
                raise StoreError(f"api returned status {response.status_code}: {response.text}")
            try:
                data = response.json()
            except ValueError as exc:
                raise StoreError(f"decode api response: {exc}") from exc

        return self.product_from_api(data, stockcode)

    def product_from_api(self, data: Any, stockcode: str) -> Product:
        """Build a product from the decoded API reply."""
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise StoreError("decode api response: expected a JSON object")
        details = _lookup(data, "Product")
        if details is None:
            details = {}
        if not isinstance(details, Mapping):
            raise StoreError("decode api response: Product is not an object")

        name = _text(details, "Name")
        display_name = _text(details, "DisplayName")
        price = _number(details, "Price")
        in_stock = _flag(details, "IsInStock")

        if not name and not display_name:
            raise StoreError(f"product not found for stockcode {stockcode}")
        if price == 0 and not in_stock:
            quoted = json.dumps(display_name, ensure_ascii=False)
            raise StoreError(f"product {quoted} is unavailable (not in stock, price=0)")

        image_url = (
            _text(details, "LargeImageFile")
            or _text(details, "MediumImageFile")
            or _text(details, "SmallImageFile")
        )
        return Product(name=display_name or name, price=price, image_url=image_url)