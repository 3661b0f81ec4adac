import sqlite3
from contextlib import closing
from datetime import datetime, timedelta, timezone

import pytest

from wishlist_tracker.db import Database, DatabaseError
from wishlist_tracker.models import ZERO_TIME


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "test.db"


@pytest.fixture
def database(db_path):
    db = Database(db_path)
    yield db
    db.close()


def _raw(db_path, sql, params=()):
    with closing(sqlite3.connect(db_path)) as conn:
        conn.execute(sql, params)
        conn.commit()


def test_item_exists_no_duplicate(database):
    assert database.item_exists("test@example.com", "https://example.com/product/1") is False


def test_item_exists_duplicate(database):
    database.create_item(
        "test@example.com", "https://example.com/product/1", "TestStore", "Product 1", "", None
    )
    assert database.item_exists("test@example.com", "https://example.com/product/1") is True


def test_item_exists_different_email(database):
    database.create_item(
        "user1@example.com", "https://example.com/product/1", "TestStore", "Product 1", "", None
    )
    assert database.item_exists("user2@example.com", "https://example.com/product/1") is False


def test_item_exists_different_url(database):
    database.create_item(
        "test@example.com", "https://example.com/product/1", "TestStore", "Product 1", "", None
    )
    assert database.item_exists("test@example.com", "https://example.com/product/2") is False


def test_create_and_get_round_trip(database):
    created = database.create_item(
        "test@example.com", "https://example.com/p", "TestStore", "Widget",
        "https://example.com/i.png", 9.99,
    )
    fetched = database.get_item(created.id)
    assert fetched.id == created.id
    assert fetched.email == "test@example.com"
    assert fetched.url == "https://example.com/p"
    assert fetched.store == "TestStore"
    assert fetched.name == "Widget"
    assert fetched.image_url == "https://example.com/i.png"
    assert fetched.target_price == 9.99
    assert fetched.notified is False
    assert fetched.created_at == created.created_at.replace(microsecond=0)


def test_get_missing_item_returns_none(database):
    assert database.get_item("missing") is None


def test_list_items_by_email_newest_first(database, db_path):
    old = database.create_item("a@example.com", "https://example.com/1", "S", "Old", "", None)
    new = database.create_item("a@example.com", "https://example.com/2", "S", "New", "", None)
    database.create_item("b@example.com", "https://example.com/3", "S", "Other", "", None)
    _raw(db_path, "UPDATE items SET created_at = ? WHERE id = ?", ("2020-01-01 00:00:00", old.id))
    assert [item.id for item in database.list_items_by_email("a@example.com")] == [new.id, old.id]
    assert [item.id for item in database.get_all_items()][0] == old.id
    assert len(database.get_all_items()) == 3


def test_list_items_empty(database):
    assert database.list_items_by_email("nobody@example.com") == []


def test_delete_item_cascades(database):
    item = database.create_item("a@example.com", "https://example.com/1", "S", "X", "", None)
    database.record_price(item.id, 5.0)
    database.record_notification(item.id, 5.0)
    database.delete_item(item.id)
    assert database.get_item(item.id) is None
    assert database.get_price_history(item.id) == []
    assert database.has_notification_for_price(item.id, 5.0) is False


def test_update_target_price_set_and_clear(database):
    item = database.create_item("a@example.com", "https://example.com/1", "S", "X", "", None)
    database.update_target_price(item.id, 4.5)
    assert database.get_item(item.id).target_price == 4.5
    database.update_target_price(item.id, None)
    assert database.get_item(item.id).target_price is None


def test_set_notified_toggles(database):
    item = database.create_item("a@example.com", "https://example.com/1", "S", "X", "", None)
    database.set_notified(item.id, True)
    assert database.get_item(item.id).notified is True
    database.set_notified(item.id, False)
    assert database.get_item(item.id).notified is False


def test_record_price_same_day_updates(database):
    item = database.create_item("a@example.com", "https://example.com/1", "S", "X", "", None)
    first = database.record_price(item.id, 10.0)
    second = database.record_price(item.id, 8.0)
    assert first.id == second.id
    history = database.get_price_history(item.id)
    assert len(history) == 1
    assert history[0].price == 8.0
    assert history[0].date == second.recorded_at.strftime("%Y-%m-%d")


def test_record_price_unknown_item_fails(database):
    with pytest.raises(DatabaseError):
        database.record_price("missing", 1.0)


def test_history_first_and_latest_across_days(database, db_path):
    item = database.create_item("a@example.com", "https://example.com/1", "S", "X", "", None)
    _raw(
        db_path,
        "INSERT INTO prices (id, item_id, price, recorded_at) VALUES (?, ?, ?, ?)",
        ("old", item.id, 20.0, "2024-01-01 10:00:00"),
    )
    recorded = database.record_price(item.id, 15.0)
    history = database.get_price_history(item.id)
    assert [(h.date, h.price) for h in history] == [
        ("2024-01-01", 20.0),
        (recorded.recorded_at.strftime("%Y-%m-%d"), 15.0),
    ]
    assert database.get_first_price(item.id).price == 20.0
    assert database.get_first_price(item.id).recorded_at == datetime(
        2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc
    )
    assert database.get_latest_price(item.id).price == 15.0


def test_prices_absent(database):
    item = database.create_item("a@example.com", "https://example.com/1", "S", "X", "", None)
    assert database.get_latest_price(item.id) is None
    assert database.get_first_price(item.id) is None


def test_notifications(database):
    item = database.create_item("a@example.com", "https://example.com/1", "S", "X", "", None)
    assert database.has_notification_for_price(item.id, 7.5) is False
    database.record_notification(item.id, 7.5)
    assert database.has_notification_for_price(item.id, 7.5) is True
    assert database.has_notification_for_price(item.id, 7.0) is False


@pytest.mark.parametrize(
    "stored, expected",
    [
        ("2024-05-06T07:08:09Z", datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)),
        ("2024-05-06 07:08:09", datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)),
        (
            "2024-05-06 07:08:09.123456789",
            datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc),
        ),
        ("garbage", ZERO_TIME),
    ],
)
def test_stored_timestamps_parse(database, db_path, stored, expected):
    _raw(
        db_path,
        "INSERT INTO items (id, email, url, store, name, created_at) VALUES (?, ?, ?, ?, ?, ?)",
        ("raw", "a@example.com", "https://example.com/1", "S", "X", stored),
    )
    assert database.get_item("raw").created_at == expected


def test_default_current_timestamp_parses(database, db_path):
    _raw(
        db_path,
        "INSERT INTO items (id, email, url, store, name) VALUES (?, ?, ?, ?, ?)",
        ("raw", "a@example.com", "https://example.com/1", "S", "X"),
    )
    created = database.get_item("raw").created_at
    assert abs(datetime.now(timezone.utc) - created) < timedelta(minutes=1)


def test_reopen_keeps_data(db_path):
    with Database(db_path) as first:
        item = first.create_item("a@example.com", "https://example.com/1", "S", "X", "", None)
    with Database(db_path) as second:
        assert second.get_item(item.id).name == "X"


def test_closed_database_raises(db_path):
    with Database(db_path) as db:
        pass
    with pytest.raises(DatabaseError):
        db.get_item("anything")