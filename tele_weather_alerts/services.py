"""Service wiring: builds the store, gateway, engine, queue and friends."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .cache import MemoryCache
from .config import Settings
from .engine import AlertEngine
from .jobs import AlertJobQueue
from .notifications import NotificationHub
from .scheduler import AlertScheduler
from .store import JsonAlertStore
from .weather import TomorrowIoClient, WeatherGateway, WeatherProvider
from .webhook import WebhookProcessor

logger = logging.getLogger(__name__)

ALERTS_FILE = "alerts.json"
JOURNAL_FILE = "jobs.json"


@dataclass
class Services:
    store: JsonAlertStore
    cache: MemoryCache
    gateway: WeatherGateway
    hub: NotificationHub
    engine: AlertEngine
    queue: AlertJobQueue
    scheduler: AlertScheduler
    webhook: WebhookProcessor

    def start(self) -> None:
        self.queue.start()
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.queue.stop()


def build_services(
    settings: Settings, provider: WeatherProvider | None = None
) -> Services:
    """Wire every collaborator from settings.

    ``provider`` replaces the Tomorrow.io client, mainly for tests.
    """
    data_dir = Path(settings.DATA_DIR) if settings.DATA_DIR else None

    store = JsonAlertStore(data_dir / ALERTS_FILE if data_dir else None)
    store.load()

    if provider is None:
        provider = TomorrowIoClient(
            api_key=settings.TOMORROW_IO_API_KEY,
            base_url=settings.TOMORROW_IO_BASE_URL,
            timeout=settings.WEATHER_TIMEOUT_S,
        )
    cache = MemoryCache()
    gateway = WeatherGateway(
        provider,
        cache,
        current_ttl_s=settings.WEATHER_CURRENT_TTL_S,
        forecast_ttl_s=settings.WEATHER_FORECAST_TTL_S,
        fetch_timeout_s=settings.WEATHER_TIMEOUT_S,
        fanout=settings.WEATHER_BATCH_FANOUT,
    )
    hub = NotificationHub()
    engine = AlertEngine(store, gateway, hub, forecast_days=settings.FORECAST_DAYS)
    queue = AlertJobQueue(
        engine,
        data_dir / JOURNAL_FILE if data_dir else None,
        concurrency=settings.QUEUE_CONCURRENCY,
        keep_completed=settings.QUEUE_KEEP_COMPLETED,
        keep_failed=settings.QUEUE_KEEP_FAILED,
        max_attempts=settings.QUEUE_MAX_ATTEMPTS,
        backoff_s=settings.QUEUE_BACKOFF_S,
    )
    scheduler = AlertScheduler(queue, interval_s=settings.SCHEDULE_INTERVAL_S)
    webhook = WebhookProcessor(store, queue, settings.TOMORROW_IO_WEBHOOK_SECRET)
    logger.info("Services built (data dir: %s)", data_dir or "in-memory")
    return Services(
        store=store,
        cache=cache,
        gateway=gateway,
        hub=hub,
        engine=engine,
        queue=queue,
        scheduler=scheduler,
        webhook=webhook,
    )
