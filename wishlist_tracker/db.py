"""SQLite storage for tracked items, price snapshots and sent notifications."""

from __future__ import annotations

import re
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from os import PathLike
from typing import Iterator, Optional, Sequence, Union

from .models import ZERO_TIME, Item, Price, PriceHistory

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_FRACTION_RE = re.compile(r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\.(\d{1,9})$")
_ITEM_COLUMNS = "id, email, url, store, name, image_url, target_price, notified, created_at"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id          TEXT PRIMARY KEY,
    email       TEXT NOT NULL,
    url         TEXT NOT NULL,
    store       TEXT NOT NULL,
    name        TEXT NOT NULL,
    target_price REAL,
    created_at  TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS prices (
    id          TEXT PRIMARY KEY,
    item_id     TEXT NOT NULL,
    price       REAL NOT NULL,
    recorded_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS notifications (
    id      TEXT PRIMARY KEY,
    item_id TEXT NOT NULL,
    price   REAL NOT NULL,
    sent_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_items_email ON items(email);
CREATE INDEX IF NOT EXISTS idx_prices_item_id ON prices(item_id);
CREATE INDEX IF NOT EXISTS idx_notifications_item_id ON notifications(item_id);
"""

_LATE_COLUMNS = (
    "ALTER TABLE items ADD COLUMN notified INTEGER NOT NULL DEFAULT 0",
    "ALTER TABLE items ADD COLUMN image_url TEXT NOT NULL DEFAULT ''",
)


class DatabaseError(Exception):
    """Raised when a storage operation fails."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(_TIME_FORMAT)


def _parse_time(value: object) -> datetime:
    """Parse a stored timestamp, accepting the formats the table may hold."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value) if value is not None else ""

    try:
        return datetime.strptime(text, _TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    if "T" in text:
        iso = text[:-1] + "+00:00" if text.endswith("Z") else text
        try:
            parsed = datetime.fromisoformat(iso)
        except ValueError:
            parsed = None
        if parsed is not None and parsed.tzinfo is not None:
            return parsed.astimezone(timezone.utc)

    match = _FRACTION_RE.match(text)
    if match:
        base = datetime.strptime(match.group(1), _TIME_FORMAT)
        micros = int(match.group(2)[:6].ljust(6, "0"))
        return base.replace(microsecond=micros, tzinfo=timezone.utc)

    return ZERO_TIME


def _row_to_item(row: Sequence) -> Item:
    return Item(
        id=row[0],
        email=row[1],
        url=row[2],
        store=row[3],
        name=row[4],
        image_url=row[5] or "",
        target_price=None if row[6] is None else float(row[6]),
        notified=bool(row[7]),
        created_at=_parse_time(row[8]),
    )


def _row_to_price(row: Sequence) -> Price:
    return Price(id=row[0], item_id=row[1], price=float(row[2]), recorded_at=_parse_time(row[3]))


class Database:
    """A SQLite database of tracked items, safe to share between threads."""

    def __init__(self, path: Union[str, PathLike]) -> None:
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(
                str(path), isolation_level=None, check_same_thread=False
            )
        except sqlite3.Error as exc:
            raise DatabaseError(f"open db: {exc}") from exc
        try:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._migrate()
        except sqlite3.Error as exc:
            self._conn.close()
            raise DatabaseError(f"migrate: {exc}") from exc

    def _migrate(self) -> None:
        self._conn.executescript(_SCHEMA)
        for statement in _LATE_COLUMNS:
            try:
                self._conn.execute(statement)
            except sqlite3.OperationalError:
                pass  # column already present

    @contextmanager
    def _session(self, action: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                raise DatabaseError(f"{action}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # Items

    def create_item(
        self,
        email: str,
        url: str,
        store: str,
        name: str,
        image_url: str = "",
        target_price: Optional[float] = None,
    ) -> Item:
        """Insert a new tracked item and return it."""
        item_id = str(uuid.uuid4())
        now = _utcnow()
        with self._session("insert item") as conn:
            conn.execute(
                "INSERT INTO items (id, email, url, store, name, image_url, target_price, "
                "notified, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)",
                (item_id, email, url, store, name, image_url, target_price, _format_time(now)),
            )
        return Item(
            id=item_id,
            email=email,
            url=url,
            store=store,
            name=name,
            image_url=image_url,
            target_price=target_price,
            created_at=now,
        )

    def get_item(self, item_id: str) -> Optional[Item]:
        """Return the item with this id, or None if there is none."""
        with self._session("get item") as conn:
            row = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM items WHERE id = ?", (item_id,)
            ).fetchone()
        return None if row is None else _row_to_item(row)

    def list_items_by_email(self, email: str) -> list[Item]:
        """Return all items of one user, newest first."""
        with self._session("list items") as conn:
            rows = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM items WHERE email = ? ORDER BY created_at DESC",
                (email,),
            ).fetchall()
        return [_row_to_item(row) for row in rows]

    def get_all_items(self) -> list[Item]:
        """Return every tracked item, oldest first."""
        with self._session("get all items") as conn:
            rows = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM items ORDER BY created_at"
            ).fetchall()
        return [_row_to_item(row) for row in rows]

    def delete_item(self, item_id: str) -> None:
        """Remove an item together with its prices and notifications."""
        with self._session("delete item") as conn:
            conn.execute("DELETE FROM items WHERE id = ?", (item_id,))

    def item_exists(self, email: str, url: str) -> bool:
        """Tell whether this user already tracks this URL."""
        with self._session("check duplicate item") as conn:
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM items WHERE email = ? AND url = ?", (email, url)
            ).fetchone()
        return count > 0

    def update_target_price(self, item_id: str, target_price: Optional[float]) -> None:
        """Set the target price of an item; None removes it."""
        with self._session("update target price") as conn:
            conn.execute(
                "UPDATE items SET target_price = ? WHERE id = ?", (target_price, item_id)
            )

    def set_notified(self, item_id: str, notified: bool) -> None:
        """Mute (True) or reactivate (False) alerts for an item."""
        with self._session("set notified") as conn:
            conn.execute(
                "UPDATE items SET notified = ? WHERE id = ?", (1 if notified else 0, item_id)
            )

    # Prices

    def record_price(self, item_id: str, price: float) -> Price:
        """Record a price snapshot, keeping at most one per item per UTC day."""
        now = _utcnow()
        now_text = _format_time(now)
        today = now.strftime("%Y-%m-%d")
        with self._lock:
            with self._session("check existing price") as conn:
                row = conn.execute(
                    "SELECT id FROM prices WHERE item_id = ? AND SUBSTR(recorded_at, 1, 10) = ?",
                    (item_id, today),
                ).fetchone()
            if row is not None:
                with self._session("update price") as conn:
                    conn.execute(
                        "UPDATE prices SET price = ?, recorded_at = ? WHERE id = ?",
                        (price, now_text, row[0]),
                    )
                return Price(id=row[0], item_id=item_id, price=price, recorded_at=now)

            price_id = str(uuid.uuid4())
            with self._session("insert price") as conn:
                conn.execute(
                    "INSERT INTO prices (id, item_id, price, recorded_at) VALUES (?, ?, ?, ?)",
                    (price_id, item_id, price, now_text),
                )
        return Price(id=price_id, item_id=item_id, price=price, recorded_at=now)

    def _price_at_end(self, item_id: str, order: str, action: str) -> Optional[Price]:
        with self._session(action) as conn:
            row = conn.execute(
                "SELECT id, item_id, price, recorded_at FROM prices WHERE item_id = ? "
                f"ORDER BY recorded_at {order} LIMIT 1",
                (item_id,),
            ).fetchone()
        return None if row is None else _row_to_price(row)

    def get_latest_price(self, item_id: str) -> Optional[Price]:
        """Return the most recent price of an item, or None."""
        return self._price_at_end(item_id, "DESC", "get latest price")

    def get_first_price(self, item_id: str) -> Optional[Price]:
        """Return the earliest recorded price of an item, or None."""
        return self._price_at_end(item_id, "ASC", "get first price")

    def get_price_history(self, item_id: str) -> list[PriceHistory]:
        """Return one price per day for an item, oldest first."""
        with self._session("get price history") as conn:
            rows = conn.execute(
                "SELECT price, SUBSTR(recorded_at, 1, 10) AS day FROM prices "
                "WHERE item_id = ? GROUP BY day ORDER BY day ASC",
                (item_id,),
            ).fetchall()
        return [PriceHistory(date=day, price=float(price)) for price, day in rows]

    # Notifications

    def record_notification(self, item_id: str, price: float) -> None:
        """Log that an alert was sent for an item at a price."""
        with self._session("record notification") as conn:
            conn.execute(
                "INSERT INTO notifications (id, item_id, price, sent_at) VALUES (?, ?, ?, ?)",
                (str(uuid.uuid4()), item_id, price, _format_time(_utcnow())),
            )

    def has_notification_for_price(self, item_id: str, price: float) -> bool:
        """Tell whether an alert was already sent for this item at this price."""
        with self._session("check notification") as conn:
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM notifications WHERE item_id = ? AND price = ?",
                (item_id, price),
            ).fetchone()
        return count > 0