import logging

import pytest

from wishlist_tracker.config import load


def test_defaults_with_empty_environment():
    config = load({})
    assert config.server.port == 8080
    assert config.database.path == "./wishlist.db"
    assert config.scheduler.cron == "0 3 * * *"
    assert config.smtp.host == "smtp.gmail.com"
    assert config.smtp.port == 587
    assert config.smtp.username == ""
    assert config.smtp.password == ""
    assert config.smtp.sender == ""
    assert config.debug is False


def test_overrides_from_environment():
    password = "password"
    env = {
        "SERVER_PORT": "9090",
        "DATABASE_PATH": "/tmp/x.db",
        "SCHEDULER_CRON": "*/5 * * * *",
        "SMTP_HOST": "mail.example.com",
        "SMTP_PORT": "2525",
        "SMTP_USERNAME": "user@example.com",
        "SMTP_PASSWORD": password,
        "SMTP_FROM": "alerts@example.com",
        "DEBUG": "true",
    }
    config = load(env)
    assert config.server.port == 9090
    assert config.database.path == "/tmp/x.db"
    assert config.scheduler.cron == "*/5 * * * *"
    assert config.smtp.host == "mail.example.com"
    assert config.smtp.port == 2525
    assert config.smtp.username == "user@example.com"
    assert config.smtp.password == password
    assert config.smtp.sender == "alerts@example.com"
    assert config.debug is True


def test_empty_string_overrides_default():
    assert load({"SMTP_HOST": ""}).smtp.host == ""


@pytest.mark.parametrize("value", ["abc", " 9000", "9.5", ""])
def test_invalid_integer_falls_back(value, caplog):
    with caplog.at_level(logging.WARNING):
        config = load({"SERVER_PORT": value})
    assert config.server.port == 8080
    assert "SERVER_PORT" in caplog.text


def test_signed_integer_accepted():
    assert load({"SMTP_PORT": "+465"}).smtp.port == 465


@pytest.mark.parametrize("value", ["1", "t", "T", "TRUE", "true", "True"])
def test_true_words(value):
    assert load({"DEBUG": value}).debug is True


@pytest.mark.parametrize("value", ["0", "f", "F", "FALSE", "false", "False", "yes", "on", ""])
def test_false_or_invalid_words(value):
    assert load({"DEBUG": value}).debug is False


def test_reads_process_environment(monkeypatch):
    monkeypatch.setenv("SERVER_PORT", "7070")
    assert load().server.port == 7070