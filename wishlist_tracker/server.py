"""Command that runs the HTTP API together with the price-polling schedule."""

from __future__ import annotations

import logging
import signal
import sqlite3
import threading
from pathlib import Path
from socketserver import ThreadingMixIn
from typing import Optional, Sequence
from wsgiref.simple_server import WSGIServer, make_server

from dotenv import load_dotenv

from . import config as app_config
from .api import create_app
from .cron import CronError
from .db import Database, DatabaseError
from .notify import Emailer
from .poller import Poller

log = logging.getLogger(__name__)


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


def _install_signal_handlers(stop: threading.Event) -> dict:
    if threading.current_thread() is not threading.main_thread():
        return {}
    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, lambda *_: stop.set())
    return previous


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Start the tracker and serve until interrupted; return the exit status."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(name)s:%(lineno)d %(message)s"
    )
    log.info("Wishlist Price Tracker starting...")

    env_file = Path(".env")
    if env_file.is_file():
        load_dotenv(env_file, override=False)
        log.info("Loaded .env file")
    else:
        log.info("No .env file found — using environment variables")

    cfg = app_config.load()
    if cfg.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        database = Database(cfg.database.path)
    except (DatabaseError, sqlite3.Error, OSError) as exc:
        log.critical("Failed to initialize database: %s", exc)
        return 1

    with database:
        log.info("Database initialized")

        emailer = Emailer(cfg.smtp)
        if not cfg.smtp.username:
            log.warning(
                "SMTP not configured — emails will be skipped. "
                "Set SMTP_USERNAME, SMTP_PASSWORD, SMTP_FROM env vars."
            )
        else:
            log.info("Email configured: %s via %s:%d", cfg.smtp.sender, cfg.smtp.host, cfg.smtp.port)

        app = create_app(database, emailer)

        poller = Poller(database, emailer)
        try:
            poller.start(cfg.scheduler.cron)
        except CronError as exc:
            log.critical("Failed to start scheduler: %s", exc)
            return 1
        log.info("Scheduler started (cron: %s)", cfg.scheduler.cron)

        try:
            try:
                httpd = make_server("", cfg.server.port, app, server_class=_ThreadingWSGIServer)
            except OSError as exc:
                log.critical("Server failed: %s", exc)
                return 1

            stop = threading.Event()
            previous = _install_signal_handlers(stop)
            log.info("Server listening on :%d", cfg.server.port)
            serving = threading.Thread(target=httpd.serve_forever, name="http", daemon=True)
            serving.start()
            try:
                while not stop.wait(1.0):
                    pass
            finally:
                log.info("Shutting down...")
                httpd.shutdown()
                httpd.server_close()
                for signum, handler in previous.items():
                    signal.signal(signum, handler)
        finally:
            poller.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())