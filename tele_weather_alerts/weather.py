"""Tomorrow.io client and the caching weather gateway in front of it."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Protocol

import httpx

from .cache import CacheStore
from .errors import WeatherFetchError
from .locations import key_of, parse_key
from .models.alerts import Location, Parameter
from .models.weather import ForecastPoint, WeatherReading

logger = logging.getLogger(__name__)

FIELDS: tuple[str, ...] = tuple(p.value for p in Parameter)
DEFAULT_BASE_URL = "https://api.tomorrow.io/v4"
# Hourly forecasts are always fetched at full depth so one cache entry serves
# every horizon.
FORECAST_FETCH_DAYS = 5


class WeatherProvider(Protocol):
    async def fetch_timeline(
        self,
        location: str,
        fields: Iterable[str],
        timestep: str,
        horizon_days: int | None = None,
    ) -> dict[str, Any]: ...


class TomorrowIoClient:
    """Async client for the Tomorrow.io timelines API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def fetch_timeline(
        self,
        location: str,
        fields: Iterable[str],
        timestep: str,
        horizon_days: int | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/timelines"
        params: dict[str, str] = {
            "location": location,
            "fields": ",".join(fields),
            "timesteps": timestep,
            "apikey": self.api_key,
        }
        if horizon_days:
            params["endTime"] = f"nowPlus{int(horizon_days)}d"

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                resp = await client.get(url, params=params)
                resp.raise_for_status()
                return resp.json()
            except httpx.HTTPError as e:
                logger.error("Tomorrow.io request failed for %s: %s", location, e)
                raise WeatherFetchError(f"Tomorrow.io request failed: {e}") from e
            except ValueError as e:
                raise WeatherFetchError(f"Invalid Tomorrow.io response: {e}") from e


def _intervals(response: Any) -> list[dict[str, Any]]:
    try:
        intervals = response["data"]["timelines"][0]["intervals"]
    except (KeyError, IndexError, TypeError):
        intervals = None
    if not intervals:
        raise WeatherFetchError("No weather data in response")
    return intervals


def _reading_from_interval(interval: dict[str, Any]) -> WeatherReading:
    values = interval.get("values") or {}
    data: dict[str, object] = {f: values.get(f) for f in FIELDS}
    data["time"] = interval.get("startTime")
    return WeatherReading.from_dict(data)


def transform_current(response: Any) -> WeatherReading:
    return _reading_from_interval(_intervals(response)[0])


def _parse_time(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def transform_forecast(response: Any) -> list[ForecastPoint]:
    points: list[tuple[datetime, ForecastPoint]] = []
    for interval in _intervals(response):
        reading = _reading_from_interval(interval)
        ts = _parse_time(reading.time)
        if ts is None:
            logger.debug("Skipping forecast interval without time: %s", interval)
            continue
        points.append((ts, ForecastPoint(time=str(reading.time), reading=reading)))
    points.sort(key=lambda item: item[0])
    return [point for _, point in points]


def _limit_horizon(
    points: list[ForecastPoint], horizon_days: int
) -> list[ForecastPoint]:
    if not points:
        return points
    start = _parse_time(points[0].time)
    if start is None:
        return points
    cutoff = start + timedelta(days=horizon_days)
    return [p for p in points if (_parse_time(p.time) or start) <= cutoff]


class WeatherGateway:
    """Cache-or-fetch access to current conditions and forecasts."""

    def __init__(
        self,
        provider: WeatherProvider,
        cache: CacheStore,
        current_ttl_s: float = 5 * 60,
        forecast_ttl_s: float = 60 * 60,
        fetch_timeout_s: float = 10.0,
        fanout: int = 4,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.current_ttl_s = current_ttl_s
        self.forecast_ttl_s = forecast_ttl_s
        self.fetch_timeout_s = fetch_timeout_s
        self.fanout = max(1, fanout)

    @staticmethod
    def cache_key(kind: str, location: Location) -> str:
        return f"weather:{kind}:{key_of(location)}"

    async def _fetch(
        self, location: Location, timestep: str, horizon_days: int | None = None
    ) -> dict[str, Any]:
        try:
            return await asyncio.wait_for(
                self.provider.fetch_timeline(
                    key_of(location), FIELDS, timestep, horizon_days
                ),
                timeout=self.fetch_timeout_s,
            )
        except asyncio.TimeoutError:
            raise WeatherFetchError(
                f"Weather fetch for {key_of(location)} timed out after "
                f"{self.fetch_timeout_s}s"
            ) from None

    async def get_current(self, location: Location) -> WeatherReading:
        cache_key = self.cache_key("current", location)
        cached = await self.cache.get(cache_key)
        if cached:
            logger.debug("Cache hit for %s", cache_key)
            return WeatherReading.from_dict(json.loads(cached))

        logger.info("Fetching current weather for %s", key_of(location))
        reading = transform_current(await self._fetch(location, "current"))
        await self.cache.set(
            cache_key, json.dumps(reading.to_dict()), self.current_ttl_s
        )
        return reading

    async def get_cached_current(self, location: Location) -> WeatherReading | None:
        """Stale-tolerant lookup that never calls upstream."""
        cached = await self.cache.get(self.cache_key("current", location))
        if not cached:
            return None
        return WeatherReading.from_dict(json.loads(cached))

    async def get_forecast(
        self, location: Location, horizon_days: int = 3
    ) -> list[ForecastPoint]:
        cache_key = self.cache_key("forecast", location)
        cached = await self.cache.get(cache_key)
        if cached:
            logger.debug("Cache hit for %s", cache_key)
            points = []
            for item in json.loads(cached):
                reading = WeatherReading.from_dict(item)
                time = str(item.get("time"))
                points.append(ForecastPoint(time=time, reading=reading))
            return _limit_horizon(points, horizon_days)

        logger.info("Fetching forecast for %s", key_of(location))
        points = transform_forecast(
            await self._fetch(location, "1h", FORECAST_FETCH_DAYS)
        )
        await self.cache.set(
            cache_key,
            json.dumps([p.reading.to_dict() for p in points]),
            self.forecast_ttl_s,
        )
        return _limit_horizon(points, horizon_days)

    async def batch_fetch(
        self, locations: Iterable[Location]
    ) -> dict[str, WeatherReading]:
        """Fetch current weather once per distinct batching key.

        Failed or timed-out locations are logged and left out of the result.
        """
        unique: dict[str, Location] = {}
        for location in locations:
            unique.setdefault(key_of(location), location)
        logger.info("Batch fetching weather for %d locations", len(unique))

        semaphore = asyncio.Semaphore(self.fanout)
        results: dict[str, WeatherReading] = {}

        async def _one(key: str, location: Location) -> None:
            async with semaphore:
                try:
                    results[key] = await self.get_current(location)
                except Exception as e:
                    logger.error("Failed to fetch weather for %s: %s", key, e)

        await asyncio.gather(*(_one(k, loc) for k, loc in unique.items()))
        return results

    async def batch_fetch_keys(self, keys: Iterable[str]) -> dict[str, WeatherReading]:
        return await self.batch_fetch(parse_key(k) for k in keys)

    async def invalidate(self, location: Location) -> None:
        await self.cache.delete(
            self.cache_key("current", location), self.cache_key("forecast", location)
        )
