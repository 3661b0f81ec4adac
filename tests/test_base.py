import pytest

from wishlist_tracker.models import Product
from wishlist_tracker.stores.base import Store, StoreError


class _ExampleStore(Store):
    name = "Example"

    def matches(self, url):
        return "shop.example.com" in url.lower()

    def get_product(self, url):
        if not self.matches(url):
            raise StoreError(f"not ours: {url}")
        return Product(name="Widget", price=4.5, image_url="")


def test_store_is_abstract():
    with pytest.raises(TypeError):
        Store()


def test_concrete_store_works():
    store = _ExampleStore()
    assert store.name == "Example"
    assert store.matches("https://SHOP.example.com/p/1") is True
    assert store.matches("https://other.example.com/p/1") is False
    assert store.get_product("https://shop.example.com/p/1") == Product("Widget", 4.5, "")


def test_store_error_carries_message():
    error = StoreError("not ours: https://other.example.com/p/1")
    assert str(error) == "not ours: https://other.example.com/p/1"
    with pytest.raises(StoreError, match="not ours"):
        raise error