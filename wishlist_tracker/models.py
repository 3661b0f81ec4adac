"""Data types shared by the storage, scraping, notification and HTTP layers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@.]+(\.[^\s@.]+)*$")


class ValidationError(ValueError):
    """Raised when a request body does not meet its requirements."""


def format_time(moment: datetime) -> str:
    """Format a timestamp as RFC 3339 in UTC, trimming trailing fraction zeros."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    return text + "Z"


@dataclass
class Item:
    """A product that someone is tracking."""

    id: str
    email: str
    url: str
    store: str
    name: str
    image_url: str = ""
    target_price: Optional[float] = None
    notified: bool = False
    created_at: datetime = ZERO_TIME

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "email": self.email,
            "url": self.url,
            "store": self.store,
            "name": self.name,
        }
        if self.image_url:
            data["image_url"] = self.image_url
        if self.target_price is not None:
            data["target_price"] = self.target_price
        data["notified"] = self.notified
        data["created_at"] = format_time(self.created_at)
        return data


@dataclass
class Price:
    """A single price snapshot for an item."""

    id: str
    item_id: str
    price: float
    recorded_at: datetime = ZERO_TIME

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "price": self.price,
            "recorded_at": format_time(self.recorded_at),
        }


@dataclass
class PriceHistory:
    """One day's price, as returned by the history endpoint."""

    date: str
    price: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "price": self.price}


@dataclass
class Notification:
    """A record of an alert that was sent."""

    id: str
    item_id: str
    price: float
    sent_at: datetime = ZERO_TIME

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "price": self.price,
            "sent_at": format_time(self.sent_at),
        }


def _require_string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None or value == "":
        raise ValidationError(f"{key} is required")
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class RegisterRequest:
    """The body of a request to start tracking a product."""

    email: str
    url: str
    target_price: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Any) -> "RegisterRequest":
        """Validate a decoded JSON body and build a request from it."""
        if not isinstance(data, Mapping):
            raise ValidationError("request body must be a JSON object")

        email = _require_string(data, "email")
        if not _EMAIL_RE.match(email):
            raise ValidationError("email must be a valid email address")

        url = _require_string(data, "url")
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValidationError("url must be a valid URL")

        target = data.get("target_price")
        if target is not None:
            if not _is_number(target):
                raise ValidationError("target_price must be a number")
            target = float(target)

        return cls(email=email, url=url, target_price=target)


@dataclass
class RegisterResponse:
    """The reply to a successful registration."""

    item_id: str
    name: str
    current_price: float
    image_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "item_id": self.item_id,
            "name": self.name,
            "current_price": self.current_price,
        }
        if self.image_url:
            data["image_url"] = self.image_url
        return data


@dataclass
class Product:
    """What a store scraper returns."""

    name: str
    price: float
    image_url: str = ""