"""Central configuration for tele_weather_alerts."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Set

from .weather import FORECAST_FETCH_DAYS

logger = logging.getLogger(__name__)


def _split_ints(s: str) -> Set[int]:
    """Parse comma-separated string into a set of integers.

    Args:
        s: Comma-separated string of integers (e.g., "123,456,789")

    Returns:
        Set of parsed integers. Invalid entries are silently skipped.

    Example:
        >>> _split_ints("123,456,invalid,789")
        {123, 456, 789}
    """
    out = set()
    for part in (s or "").split(","):
        p = part.strip()
        if p.isdigit():
            out.add(int(p))
    return out


def _float_env(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def _int_env(name: str, default: int, minimum: int = 0) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default
    return max(minimum, value)


@dataclass
class Settings:
    """Configuration settings for tele_weather_alerts.

    All settings are loaded from environment variables with sensible defaults.
    """

    BOT_TOKEN: str | None
    ALLOWED_CHAT_IDS: Set[int]
    RATE_LIMIT_S: float
    TOMORROW_IO_API_KEY: str
    TOMORROW_IO_BASE_URL: str
    TOMORROW_IO_WEBHOOK_SECRET: str | None
    WEATHER_TIMEOUT_S: float
    WEATHER_CURRENT_TTL_S: int
    WEATHER_FORECAST_TTL_S: int
    WEATHER_BATCH_FANOUT: int
    FORECAST_DAYS: int
    QUEUE_CONCURRENCY: int
    QUEUE_KEEP_COMPLETED: int
    QUEUE_KEEP_FAILED: int
    QUEUE_MAX_ATTEMPTS: int
    QUEUE_BACKOFF_S: float
    SCHEDULE_INTERVAL_S: float
    DATA_DIR: str


def _read_settings() -> Settings:
    """Read all configuration from environment variables.

    Returns:
        Settings object with all configuration values.

    Note:
        Invalid numeric values fall back to the defaults.
    """
    token = os.environ.get("BOT_TOKEN") or None
    allowed = _split_ints(os.environ.get("ALLOWED_CHAT_IDS", ""))
    rate_limit = _float_env("RATE_LIMIT_S", 1.0)

    # Tomorrow.io
    api_key = os.environ.get("TOMORROW_IO_API_KEY") or ""
    base_url = (
        os.environ.get("TOMORROW_IO_BASE_URL") or "https://api.tomorrow.io/v4"
    ).rstrip("/")
    webhook_secret = os.environ.get("TOMORROW_IO_WEBHOOK_SECRET") or None

    # Gateway
    weather_timeout = _float_env("WEATHER_TIMEOUT_S", 10.0)
    current_ttl = _int_env("WEATHER_CURRENT_TTL_S", 5 * 60)
    forecast_ttl = _int_env("WEATHER_FORECAST_TTL_S", 60 * 60)
    fanout = _int_env("WEATHER_BATCH_FANOUT", 4, minimum=1)
    forecast_days = _int_env("FORECAST_DAYS", 3, minimum=1)

    # Queue + scheduler
    concurrency = _int_env("QUEUE_CONCURRENCY", 5, minimum=1)
    keep_completed = _int_env("QUEUE_KEEP_COMPLETED", 100)
    keep_failed = _int_env("QUEUE_KEEP_FAILED", 50)
    max_attempts = _int_env("QUEUE_MAX_ATTEMPTS", 3, minimum=1)
    backoff = _float_env("QUEUE_BACKOFF_S", 5.0)
    interval = _float_env("SCHEDULE_INTERVAL_S", 5 * 60)

    data_dir = os.environ.get("DATA_DIR") or "/app/data"

    return Settings(
        BOT_TOKEN=token,
        ALLOWED_CHAT_IDS=allowed,
        RATE_LIMIT_S=rate_limit,
        TOMORROW_IO_API_KEY=api_key,
        TOMORROW_IO_BASE_URL=base_url,
        TOMORROW_IO_WEBHOOK_SECRET=webhook_secret,
        WEATHER_TIMEOUT_S=weather_timeout,
        WEATHER_CURRENT_TTL_S=current_ttl,
        WEATHER_FORECAST_TTL_S=forecast_ttl,
        WEATHER_BATCH_FANOUT=fanout,
        FORECAST_DAYS=forecast_days,
        QUEUE_CONCURRENCY=concurrency,
        QUEUE_KEEP_COMPLETED=keep_completed,
        QUEUE_KEEP_FAILED=keep_failed,
        QUEUE_MAX_ATTEMPTS=max_attempts,
        QUEUE_BACKOFF_S=backoff,
        SCHEDULE_INTERVAL_S=interval,
        DATA_DIR=data_dir,
    )


settings = _read_settings()


def validate_settings(settings: Settings = settings) -> None:
    """Validate critical configuration and log warnings for issues.

    Out-of-range values that would otherwise be silently capped are clamped
    here so the exported constants match what the gateway serves.
    """
    if settings.BOT_TOKEN is None:
        logger.error("BOT_TOKEN environment variable is not set")
    if not settings.ALLOWED_CHAT_IDS:
        logger.warning(
            "ALLOWED_CHAT_IDS is empty; guarded commands will be unauthorized."
        )
    if not settings.TOMORROW_IO_API_KEY:
        logger.warning("TOMORROW_IO_API_KEY is not set; weather fetches will fail.")
    if settings.TOMORROW_IO_WEBHOOK_SECRET is None:
        logger.warning("TOMORROW_IO_WEBHOOK_SECRET is not set; webhooks are unsigned.")
    if settings.FORECAST_DAYS > FORECAST_FETCH_DAYS:
        logger.warning(
            "FORECAST_DAYS=%d exceeds the %d-day forecast; using %d",
            settings.FORECAST_DAYS,
            FORECAST_FETCH_DAYS,
            FORECAST_FETCH_DAYS,
        )
        settings.FORECAST_DAYS = FORECAST_FETCH_DAYS


validate_settings()

# Exported constants
TOKEN: str | None = settings.BOT_TOKEN
ALLOWED: set[int] = settings.ALLOWED_CHAT_IDS
RATE_LIMIT_S: float = settings.RATE_LIMIT_S
FORECAST_DAYS: int = settings.FORECAST_DAYS
WEBHOOK_SECRET: str | None = settings.TOMORROW_IO_WEBHOOK_SECRET
