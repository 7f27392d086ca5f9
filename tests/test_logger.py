import logging

import pytest

from tele_weather_alerts import logger as log_setup


@pytest.fixture
def clean_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_resolve_level() -> None:
    assert log_setup.resolve_level("debug") == logging.DEBUG
    assert log_setup.resolve_level(" WARNING ") == logging.WARNING
    assert log_setup.resolve_level("15") == 15
    assert log_setup.resolve_level("chatty") == logging.INFO
    assert log_setup.resolve_level(None) == logging.INFO


def test_setup_logging_is_idempotent(monkeypatch, clean_root) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    before = len(clean_root.handlers)

    log_setup.setup_logging()
    log_setup.setup_logging()

    assert len(clean_root.handlers) == before + 1
    assert clean_root.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_explicit_level_wins_over_env(monkeypatch, clean_root) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")

    log_setup.setup_logging("error")

    assert clean_root.level == logging.ERROR
    assert logging.getLogger("telegram").level == logging.ERROR
