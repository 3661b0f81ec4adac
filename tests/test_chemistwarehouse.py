import pytest
import responses

from wishlist_tracker.models import Product
from wishlist_tracker.stores.base import StoreError
from wishlist_tracker.stores.chemistwarehouse import ChemistWarehouse, parse_price

URL = "https://www.chemistwarehouse.com.au/buy/1234/vitamin-c"

EMBEDDED = (
    '<html><head><meta property="og:image" content="https://img.example.com/vc.jpg">'
    "</head><body><h1>  Vitamin C 500mg  </h1><script>window.data = "
    '{"price":{"value":{"amount":14.99,"currencyCode":"AUD"}},'
    '"rrp":{"amount":17,"currencyCode":"AUD"}}</script></body></html>'
)


def test_parse_price_values():
    assert parse_price("$18.50") == 18.5
    assert parse_price(" 18.50 ") == 18.5
    assert parse_price("$1,234.50") == 1234.5


@pytest.mark.parametrize("text", ["", "  ", "$", "abc"])
def test_parse_price_rejects(text):
    with pytest.raises(ValueError):
        parse_price(text)


def test_matches():
    store = ChemistWarehouse()
    assert store.matches("https://WWW.ChemistWarehouse.com.au/buy/1")
    assert not store.matches("https://www.woolworths.com.au/shop/productdetails/1")
    assert store.name == "Chemist Warehouse"


def test_embedded_json_price():
    product = ChemistWarehouse().parse_page(EMBEDDED)
    assert product == Product("Vitamin C 500mg", 14.99, "https://img.example.com/vc.jpg")


def test_rrp_used_when_sale_price_zero():
    html = (
        "<h1>Fish Oil</h1><script>"
        '{"price":{"value":{"amount":0,"currencyCode":"AUD"}},'
        '"rrp":{"amount":17,"currencyCode":"AUD"}}</script>'
    )
    assert ChemistWarehouse().parse_page(html).price == 17.0


def test_selector_fallback_and_image_fallback():
    html = (
        "<h1>Zinc</h1><div class='product-image'><img src='/zinc.png'></div>"
        "<span class='product__price'>$18.50</span>"
    )
    product = ChemistWarehouse().parse_page(html)
    assert product.price == 18.5
    assert product.image_url == "/zinc.png"


def test_meta_price_fallback_and_og_title():
    html = (
        '<meta property="og:title" content="Buy Magnesium Plus online at Chemist Warehouse">'
        '<meta property="product:price:amount" content="9.95">'
    )
    product = ChemistWarehouse().parse_page(html)
    assert product.name == "Magnesium Plus"
    assert product.price == 9.95
    assert product.image_url == ""


def test_missing_name():
    with pytest.raises(StoreError, match="could not find product name"):
        ChemistWarehouse().parse_page("<p>nothing</p>")


def test_missing_price():
    with pytest.raises(StoreError, match="could not find product price"):
        ChemistWarehouse().parse_page("<h1>Zinc</h1>")


def test_bad_selector_price():
    with pytest.raises(StoreError, match="parse price"):
        ChemistWarehouse().parse_page("<h1>Zinc</h1><span class='Price'>call us</span>")


def test_get_product_fetches_page():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body=EMBEDDED, status=200, content_type="text/html")
        product = ChemistWarehouse().get_product(URL)
        assert "Chrome/124.0.0.0" in rsps.calls[0].request.headers["User-Agent"]
    assert product.price == 14.99


def test_get_product_bad_status():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body="gone", status=404)
        with pytest.raises(StoreError, match="unexpected status: 404"):
            ChemistWarehouse().get_product(URL)