"""HTTP API for registering, listing and checking tracked products."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, Mapping, Optional

from flask import Flask, Response, jsonify, request, send_from_directory

from .chart import ChartError, render
from .db import Database, DatabaseError
from .models import Item, RegisterRequest, RegisterResponse, ValidationError
from .notify import NotificationError, Notifier, PriceDropAlert
from .stores.base import Store, StoreError
from .stores.registry import detect as detect_store

log = logging.getLogger(__name__)


class _ApiError(Exception):
    """An error reply with a status code and a JSON body."""

    def __init__(self, status: int, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.details = details

    def body(self) -> dict[str, str]:
        data = {"error": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data


def _read_json() -> Any:
    raw = request.get_data(cache=True)
    if not raw.strip():
        raise _ApiError(400, "request body is empty")
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise _ApiError(400, str(exc)) from exc


def _target_from_body(data: Any) -> Optional[float]:
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise _ApiError(400, "request body must be a JSON object")
    value = data.get("target_price")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _ApiError(400, "target_price must be a number")
    return float(value)


def create_app(
    database: Database,
    notifier: Notifier,
    detect: Optional[Callable[[str], Store]] = None,
    web_root: str = "web",
) -> Flask:
    """Build the web application serving the API and the front-end files."""
    find_store = detect if detect is not None else detect_store
    root = os.path.abspath(web_root)
    app = Flask(__name__, static_folder=None)

    @app.errorhandler(_ApiError)
    def _handle_api_error(exc: _ApiError):
        return jsonify(exc.body()), exc.status

    def load_item(item_id: str) -> Item:
        try:
            item = database.get_item(item_id)
        except DatabaseError as exc:
            log.error("[api] get item error: %s", exc)
            raise _ApiError(500, "database error") from exc
        if item is None:
            raise _ApiError(404, "item not found")
        return item

    def load_history(item_id: str):
        try:
            return database.get_price_history(item_id)
        except DatabaseError as exc:
            log.error("[api] get price history error: %s", exc)
            raise _ApiError(500, "failed to get price history") from exc

    @app.get("/health")
    def health_check():
        return jsonify({"status": "ok"})

    @app.post("/items")
    def register_item():
        try:
            req = RegisterRequest.from_dict(_read_json())
        except ValidationError as exc:
            raise _ApiError(400, str(exc)) from exc

        try:
            store = find_store(req.url)
        except StoreError as exc:
            raise _ApiError(400, str(exc)) from exc

        try:
            exists = database.item_exists(req.email, req.url)
        except DatabaseError as exc:
            log.error("[api] duplicate check error: %s", exc)
            raise _ApiError(500, "failed to check for duplicates") from exc
        if exists:
            raise _ApiError(409, "you are already tracking this product")

        try:
            product = store.get_product(req.url)
        except StoreError as exc:
            raise _ApiError(422, "failed to scrape product", str(exc)) from exc

        try:
            item = database.create_item(
                req.email, req.url, store.name, product.name, product.image_url, req.target_price
            )
        except DatabaseError as exc:
            log.error("[api] create item error: %s", exc)
            raise _ApiError(500, "failed to save item") from exc

        try:
            database.record_price(item.id, product.price)
        except DatabaseError as exc:
            log.error("[api] record initial price error: %s", exc)

        reply = RegisterResponse(
            item_id=item.id,
            name=product.name,
            current_price=product.price,
            image_url=product.image_url,
        )
        return jsonify(reply.to_dict()), 201

    @app.get("/items")
    def list_items():
        email = request.args.get("email", "")
        if not email:
            raise _ApiError(400, "email query parameter is required")
        try:
            items = database.list_items_by_email(email)
        except DatabaseError as exc:
            log.error("[api] list items error: %s", exc)
            raise _ApiError(500, "failed to list items") from exc

        results = []
        for item in items:
            entry = item.to_dict()
            try:
                latest = database.get_latest_price(item.id)
            except DatabaseError:
                latest = None
            if latest is not None:
                entry["current_price"] = latest.price
            results.append(entry)
        return jsonify(results)

    @app.get("/items/<item_id>/history")
    def price_history(item_id: str):
        load_item(item_id)
        history = load_history(item_id) or []
        return jsonify([entry.to_dict() for entry in history])

    @app.get("/items/<item_id>/chart.png")
    def price_chart(item_id: str):
        item = load_item(item_id)
        history = load_history(item_id) or []
        try:
            png = render(history, item.name)
        except ChartError as exc:
            raise _ApiError(422, str(exc)) from exc
        return Response(png, status=200, mimetype="image/png")

    @app.post("/items/<item_id>/check")
    def manual_check(item_id: str):
        item = load_item(item_id)
        try:
            store = find_store(item.url)
        except StoreError as exc:
            raise _ApiError(500, "store detection failed") from exc
        try:
            product = store.get_product(item.url)
        except StoreError as exc:
            raise _ApiError(422, "failed to scrape product", str(exc)) from exc

        try:
            previous = database.get_latest_price(item.id)
        except DatabaseError:
            previous = None

        try:
            database.record_price(item.id, product.price)
        except DatabaseError as exc:
            log.error("[api] record price error: %s", exc)

        result: dict[str, Any] = {
            "item_id": item.id,
            "name": item.name,
            "current_price": product.price,
            "notified": False,
        }
        if previous is None:
            return jsonify(result)

        result["previous_price"] = previous.price
        is_target = item.target_price is not None and product.price <= item.target_price
        if not (product.price < previous.price or is_target):
            return jsonify(result)

        try:
            already_sent = database.has_notification_for_price(item.id, product.price)
        except DatabaseError:
            already_sent = False
        if already_sent:
            return jsonify(result)

        try:
            history = database.get_price_history(item.id) or []
        except DatabaseError:
            history = []
        try:
            chart_png = render(history, item.name)
        except ChartError as exc:
            log.warning("[api] chart generation failed: %s", exc)
            chart_png = b""

        alert = PriceDropAlert(
            to=item.email,
            product_name=item.name,
            product_url=item.url,
            image_url=product.image_url,
            old_price=previous.price,
            new_price=product.price,
            is_target=is_target,
            price_history=list(history),
            chart_png=chart_png,
        )
        try:
            notifier.send_price_alert(alert)
        except NotificationError as exc:
            log.error("[api] send email error: %s", exc)
        else:
            try:
                database.record_notification(item.id, product.price)
            except DatabaseError as exc:
                log.error("[api] record notification error: %s", exc)
            result["notified"] = True
        return jsonify(result)

    @app.patch("/items/<item_id>/target")
    def update_target(item_id: str):
        load_item(item_id)
        target = _target_from_body(_read_json())
        try:
            database.update_target_price(item_id, target)
        except DatabaseError as exc:
            log.error("[api] update target error: %s", exc)
            raise _ApiError(500, "failed to update target price") from exc
        return jsonify({"id": item_id, "target_price": target})

    @app.patch("/items/<item_id>/notify")
    def toggle_notify(item_id: str):
        item = load_item(item_id)
        muted = not item.notified
        try:
            database.set_notified(item_id, muted)
        except DatabaseError as exc:
            log.error("[api] set notified error: %s", exc)
            raise _ApiError(500, "failed to update") from exc
        return jsonify({"id": item_id, "notified": muted, "status": "muted" if muted else "active"})

    @app.delete("/items/<item_id>")
    def delete_item(item_id: str):
        load_item(item_id)
        try:
            database.delete_item(item_id)
        except DatabaseError as exc:
            log.error("[api] delete item error: %s", exc)
            raise _ApiError(500, "failed to delete item") from exc
        return jsonify({"message": "item deleted"})

    @app.get("/")
    @app.get("/index.html")
    def index():
        return send_from_directory(root, "index.html")

    @app.get("/assets/<path:filename>")
    def assets(filename: str):
        return send_from_directory(os.path.join(root, "assets"), filename)

    @app.get("/static/<path:filename>")
    def static_files(filename: str):
        return send_from_directory(os.path.join(root, "static"), filename)

    return app