"""Periodic price checks of every tracked item, with one digest per user."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .chart import ChartError, render
from .cron import CronSchedule
from .db import Database, DatabaseError
from .models import Item
from .notify import NotificationError, Notifier, PriceDropAlert
from .stores.base import Store, StoreError
from .stores.registry import detect as detect_store

log = logging.getLogger(__name__)


@dataclass
class _PollSummary:
    checked: int = 0
    drops: int = 0
    errors: int = 0


@dataclass
class _Pending:
    alert: PriceDropAlert
    item_id: str
    price: float


class Poller:
    """Checks all items on a cron schedule and e-mails price alerts."""

    def __init__(
        self,
        database: Database,
        notifier: Notifier,
        detect: Optional[Callable[[str], Store]] = None,
    ) -> None:
        self._db = database
        self._notifier = notifier
        self._detect = detect if detect is not None else detect_store
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self, cron_expr: str) -> None:
        """Begin polling in the background on the given UTC cron schedule."""
        schedule = CronSchedule.parse(cron_expr)
        with self._lock:
            if self.running:
                raise RuntimeError("poller already started")
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._loop, args=(schedule,), name="price-poller", daemon=True
            )
            self._thread.start()
        log.info("[scheduler] Started polling with cron: %s", cron_expr)

    def stop(self) -> None:
        """Stop the background schedule and wait for it to finish."""
        with self._lock:
            thread, self._thread = self._thread, None
            self._stop_event.set()
        if thread is not None:
            thread.join()
        log.info("[scheduler] Stopped")

    def _loop(self, schedule: CronSchedule) -> None:
        while not self._stop_event.is_set():
            due = schedule.next_after(datetime.now(timezone.utc))
            while (remaining := (due - datetime.now(timezone.utc)).total_seconds()) > 0:
                if self._stop_event.wait(remaining):
                    return
            try:
                self.run_now()
            except Exception:
                log.exception("[scheduler] Poll failed")

    def run_now(self) -> _PollSummary:
        """Check every item at once and return how many were checked, dropped and failed."""
        log.info("[scheduler] Starting price check for all items...")
        summary = _PollSummary()
        try:
            items = self._db.get_all_items()
        except DatabaseError as exc:
            log.error("[scheduler] Error fetching items: %s", exc)
            return summary

        log.info("[scheduler] Checking %d items", len(items))
        by_email: dict[str, list[_Pending]] = {}
        for item in items:
            summary.checked += 1
            pending = self._check(item, summary)
            if pending is not None:
                by_email.setdefault(item.email, []).append(pending)

        for email, entries in by_email.items():
            try:
                self._notifier.send_digest(email, [entry.alert for entry in entries])
            except NotificationError as exc:
                log.error("[scheduler] Digest email error for %s: %s", email, exc)
                summary.errors += 1
                continue
            for entry in entries:
                try:
                    self._db.record_notification(entry.item_id, entry.price)
                except DatabaseError as exc:
                    log.error("[scheduler] Error recording notification for %s: %s", entry.item_id, exc)
                try:
                    self._db.set_notified(entry.item_id, True)
                except DatabaseError as exc:
                    log.error("[scheduler] Error setting notified for %s: %s", entry.item_id, exc)

        log.info(
            "[scheduler] Done. Checked: %d, Drops: %d, Errors: %d",
            summary.checked,
            summary.drops,
            summary.errors,
        )
        return summary

    def _check(self, item: Item, summary: _PollSummary) -> Optional[_Pending]:
        try:
            store = self._detect(item.url)
        except StoreError as exc:
            log.error("[scheduler] Store detection failed for %s: %s", item.url, exc)
            summary.errors += 1
            return None
        try:
            product = store.get_product(item.url)
        except StoreError as exc:
            log.error("[scheduler] Scrape failed for %s (%s): %s", item.name, item.url, exc)
            summary.errors += 1
            return None

        try:
            previous = self._db.get_latest_price(item.id)
        except DatabaseError as exc:
            log.error("[scheduler] Error getting latest price for %s: %s", item.id, exc)
            previous = None

        try:
            self._db.record_price(item.id, product.price)
        except DatabaseError as exc:
            log.error("[scheduler] Error recording price for %s: %s", item.id, exc)
            summary.errors += 1
            return None

        if previous is None:
            return None
        old, new = previous.price, product.price
        target = item.target_price

        if new > old and item.notified:
            if target is None or new > target:
                try:
                    self._db.set_notified(item.id, False)
                except DatabaseError as exc:
                    log.error("[scheduler] Error unmuting %s: %s", item.id, exc)
                log.info(
                    "[scheduler] Price rose above target for %s ($%.2f -> $%.2f) — reactivated",
                    item.name, old, new,
                )
            else:
                log.info(
                    "[scheduler] Price rose for %s ($%.2f -> $%.2f) but still at/below target — staying muted",
                    item.name, old, new,
                )
            return None

        should_notify = False
        if new < old:
            should_notify = True
            summary.drops += 1
        is_target = target is not None and new <= target
        if not (should_notify or is_target):
            return None

        try:
            already_sent = self._db.has_notification_for_price(item.id, new)
        except DatabaseError as exc:
            log.error("[scheduler] Error checking notification for %s: %s", item.id, exc)
            return None
        if already_sent:
            log.info("[scheduler] Already notified for %s at $%.2f — skipping", item.name, new)
            return None

        try:
            history = self._db.get_price_history(item.id)
        except DatabaseError:
            history = []
        try:
            chart_png = render(history, item.name)
        except ChartError as exc:
            log.warning("[scheduler] Chart generation failed for %s: %s", item.name, exc)
            chart_png = b""

        original = old
        try:
            first = self._db.get_first_price(item.id)
        except DatabaseError:
            first = None
        if first is not None:
            original = first.price

        alert = PriceDropAlert(
            product_name=item.name,
            product_url=item.url,
            image_url=product.image_url,
            old_price=original,
            new_price=new,
            is_target=is_target,
            price_history=history,
            chart_png=chart_png,
        )
        return _Pending(alert=alert, item_id=item.id, price=new)