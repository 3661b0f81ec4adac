"""Application configuration read from environment variables."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

log = logging.getLogger(__name__)

_INT_RE = re.compile(r"^[+-]?\d+$")
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


@dataclass(frozen=True)
class ServerConfig:
    port: int = 8080


@dataclass(frozen=True)
class DatabaseConfig:
    path: str = "./wishlist.db"


@dataclass(frozen=True)
class SchedulerConfig:
    cron: str = "0 3 * * *"


@dataclass(frozen=True)
class SMTPConfig:
    host: str = "smtp.gmail.com"
    port: int = 587
    username: str = ""
    password: str = ""
    sender: str = ""


@dataclass(frozen=True)
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    smtp: SMTPConfig = field(default_factory=SMTPConfig)
    debug: bool = False


def _get_int(environ: Mapping[str, str], key: str, fallback: int) -> int:
    if key not in environ:
        return fallback
    value = environ[key]
    if _INT_RE.match(value):
        number = int(value)
        if -(2**63) <= number < 2**63:
            return number
    log.warning("invalid integer for %s: %s", key, value)
    return fallback


def _get_bool(environ: Mapping[str, str], key: str, fallback: bool) -> bool:
    value = environ.get(key)
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    return fallback


def load(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build the configuration from the environment, falling back to defaults."""
    env = os.environ if environ is None else environ
    return Config(
        server=ServerConfig(port=_get_int(env, "SERVER_PORT", 8080)),
        database=DatabaseConfig(path=env.get("DATABASE_PATH", "./wishlist.db")),
        scheduler=SchedulerConfig(cron=env.get("SCHEDULER_CRON", "0 3 * * *")),
        smtp=SMTPConfig(
            host=env.get("SMTP_HOST", "smtp.gmail.com"),
            port=_get_int(env, "SMTP_PORT", 587),
            username=env.get("SMTP_USERNAME", ""),
            password=env.get("SMTP_PASSWORD", ""),
            sender=env.get("SMTP_FROM", ""),
        ),
        debug=_get_bool(env, "DEBUG", False),
    )