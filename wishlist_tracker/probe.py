"""Command that scrapes one product URL and prints what was found."""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from .stores.base import StoreError
from .stores.registry import detect

DEFAULT_URL = "https://www.woolworths.com.au/shop/productdetails/708119/monster-energy-juice-mango-loco"


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Detect the store for a URL, scrape it and print the product."""
    args = list(sys.argv[1:] if argv is None else argv)
    url = args[0] if args else DEFAULT_URL

    try:
        store = detect(url)
    except StoreError as exc:
        print("Detect error:", exc)
        return 1
    print(f"Store: {store.name}")

    try:
        product = store.get_product(url)
    except StoreError as exc:
        print("GetProduct error:", exc)
        return 1

    print(f"Name:  {product.name}")
    print(f"Price: ${product.price:.2f}")
    print(f"Image: {product.image_url}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())