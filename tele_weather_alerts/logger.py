"""Logging setup for tele_weather_alerts.

One stream handler on the root logger, level taken from ``LOG_LEVEL``.
"""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# These log one line per Tomorrow.io or Telegram request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "telegram")


class _BotHandler(logging.StreamHandler):
    pass


def resolve_level(raw: str | None) -> int:
    """Level for a name (``debug``) or number (``10``); INFO when unknown."""
    text = (raw or "").strip().upper()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    if not any(isinstance(h, _BotHandler) for h in root.handlers):
        handler = _BotHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        root.addHandler(handler)
    root.setLevel(resolve_level(level or os.environ.get("LOG_LEVEL")))

    quiet = max(logging.WARNING, root.level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet)


__all__ = ["setup_logging", "resolve_level"]
