from datetime import datetime, timezone

import pytest

from wishlist_tracker.models import (
    Item,
    Notification,
    Price,
    PriceHistory,
    Product,
    RegisterRequest,
    RegisterResponse,
    ValidationError,
)


def _item(**overrides):
    fields = dict(
        id="abc",
        email="user@example.com",
        url="https://example.com/p/1",
        store="TestStore",
        name="Widget",
    )
    fields.update(overrides)
    return Item(**fields)


def test_item_to_dict_omits_empty_optional_fields():
    data = _item().to_dict()
    assert set(data) == {"id", "email", "url", "store", "name", "notified", "created_at"}
    assert data["notified"] is False


def test_item_to_dict_includes_optional_fields():
    data = _item(image_url="https://example.com/i.png", target_price=12.5).to_dict()
    assert data["image_url"] == "https://example.com/i.png"
    assert data["target_price"] == 12.5


def test_item_created_at_is_rfc3339_utc():
    moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert _item(created_at=moment).to_dict()["created_at"] == "2024-01-02T03:04:05Z"


def test_item_default_created_at_is_zero_time():
    assert _item().to_dict()["created_at"] == "0001-01-01T00:00:00Z"


def test_price_to_dict():
    data = Price(id="p1", item_id="i1", price=3.5).to_dict()
    assert data["id"] == "p1"
    assert data["item_id"] == "i1"
    assert data["price"] == 3.5
    assert data["recorded_at"].endswith("Z")


def test_price_history_to_dict():
    assert PriceHistory(date="2024-01-01", price=9.5).to_dict() == {
        "date": "2024-01-01",
        "price": 9.5,
    }


def test_notification_to_dict_keys():
    data = Notification(id="n1", item_id="i1", price=1.0).to_dict()
    assert set(data) == {"id", "item_id", "price", "sent_at"}
    assert data["price"] == 1.0


def test_register_request_valid():
    request = RegisterRequest.from_dict(
        {"email": "user@example.com", "url": "https://example.com/p/1"}
    )
    assert request.email == "user@example.com"
    assert request.url == "https://example.com/p/1"
    assert request.target_price is None


def test_register_request_target_price_coerced_to_float():
    request = RegisterRequest.from_dict(
        {"email": "user@example.com", "url": "https://example.com/p", "target_price": 10}
    )
    assert request.target_price == 10.0
    assert isinstance(request.target_price, float)


@pytest.mark.parametrize(
    "body",
    [
        {"url": "https://example.com/p"},
        {"email": "", "url": "https://example.com/p"},
        {"email": "not-an-email", "url": "https://example.com/p"},
        {"email": "user@example.com"},
        {"email": "user@example.com", "url": "not a url"},
        {"email": "user@example.com", "url": "https://example.com/p", "target_price": "5"},
        {"email": "user@example.com", "url": "https://example.com/p", "target_price": True},
        ["not", "an", "object"],
        None,
    ],
)
def test_register_request_rejects_invalid(body):
    with pytest.raises(ValidationError):
        RegisterRequest.from_dict(body)


def test_register_response_omits_empty_image():
    data = RegisterResponse(item_id="i1", name="Widget", current_price=4.0).to_dict()
    assert data == {"item_id": "i1", "name": "Widget", "current_price": 4.0}


def test_register_response_includes_image():
    data = RegisterResponse("i1", "Widget", 4.0, "https://example.com/i.png").to_dict()
    assert data["image_url"] == "https://example.com/i.png"


def test_product_defaults():
    product = Product(name="Widget", price=2.0)
    assert product.image_url == ""
    assert product.price == 2.0