import asyncio

import httpx
import pytest

from conftest import FakeProvider, timeline_response
from tele_weather_alerts.cache import MemoryCache
from tele_weather_alerts.errors import WeatherFetchError
from tele_weather_alerts.models.alerts import City, Coordinates
from tele_weather_alerts.weather import (
    TomorrowIoClient,
    WeatherGateway,
    transform_current,
    transform_forecast,
)


@pytest.mark.asyncio
async def test_client_builds_timelines_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=timeline_response([("t", {"temperature": 1})]))

    client = TomorrowIoClient(
        "secret-key",
        base_url="https://example.test/v4/",
        transport=httpx.MockTransport(handler),
    )
    body = await client.fetch_timeline(
        "37.77,-122.41", ["temperature", "humidity"], "1h", 3
    )

    assert body["data"]["timelines"][0]["intervals"][0]["values"] == {"temperature": 1}
    request = seen[0]
    assert request.url.path == "/v4/timelines"
    assert request.url.params["location"] == "37.77,-122.41"
    assert request.url.params["fields"] == "temperature,humidity"
    assert request.url.params["timesteps"] == "1h"
    assert request.url.params["endTime"] == "nowPlus3d"
    assert request.url.params["apikey"] == "secret-key"


@pytest.mark.asyncio
async def test_client_wraps_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"message": "rate limited"})

    client = TomorrowIoClient("k", transport=httpx.MockTransport(handler))
    with pytest.raises(WeatherFetchError):
        await client.fetch_timeline("Paris", ["temperature"], "current")


def test_transform_current_takes_first_interval() -> None:
    body = timeline_response(
        [
            ("2024-06-01T12:00:00Z", {"temperature": 21.5, "windSpeed": 3}),
            ("2024-06-01T13:00:00Z", {"temperature": 99}),
        ]
    )
    reading = transform_current(body)
    assert reading.values == {"temperature": 21.5, "windSpeed": 3.0}
    assert reading.time == "2024-06-01T12:00:00Z"


def test_transform_rejects_empty_response() -> None:
    with pytest.raises(WeatherFetchError, match="No weather data"):
        transform_current({"data": {"timelines": []}})


def test_transform_forecast_sorts_by_time() -> None:
    body = timeline_response(
        [
            ("2024-06-01T14:00:00Z", {"temperature": 3}),
            ("2024-06-01T12:00:00Z", {"temperature": 1}),
            ("2024-06-01T13:00:00Z", {"temperature": 2}),
        ],
        "1h",
    )
    points = transform_forecast(body)
    assert [p.reading.values["temperature"] for p in points] == [1, 2, 3]


@pytest.mark.asyncio
async def test_get_current_is_cached(
    provider: FakeProvider, gateway: WeatherGateway
) -> None:
    provider.set_current("Paris", temperature=20)

    first = await gateway.get_current(City("Paris"))
    second = await gateway.get_current(City("Paris"))

    assert first.value_for("temperature") == 20
    assert second == first
    assert provider.calls_for("Paris") == 1


@pytest.mark.asyncio
async def test_get_cached_current_never_fetches(provider, gateway) -> None:
    assert await gateway.get_cached_current(City("Paris")) is None
    assert provider.calls == []


@pytest.mark.asyncio
async def test_invalidate_forces_refetch(provider, gateway) -> None:
    provider.set_current("Paris", temperature=20)
    await gateway.get_current(City("Paris"))
    await gateway.invalidate(City("Paris"))
    await gateway.get_current(City("Paris"))
    assert provider.calls_for("Paris") == 2


@pytest.mark.asyncio
async def test_fetch_timeout_raises_fetch_error(provider) -> None:
    provider.set_current("Paris", temperature=20)
    provider.delay = 0.2
    gateway = WeatherGateway(provider, MemoryCache(), fetch_timeout_s=0.01)
    with pytest.raises(WeatherFetchError, match="timed out"):
        await gateway.get_current(City("Paris"))


@pytest.mark.asyncio
async def test_batch_fetch_dedupes_and_omits_failures(provider, gateway) -> None:
    sf = Coordinates(37.77, -122.41)
    provider.set_current("37.77,-122.41", temperature=18)
    provider.fail("Nowhere")

    results = await gateway.batch_fetch(
        [sf, Coordinates(37.77, -122.41), City("Nowhere")]
    )

    assert set(results) == {"37.77,-122.41"}
    assert provider.calls_for("37.77,-122.41") == 1


@pytest.mark.asyncio
async def test_batch_fetch_respects_fanout(provider) -> None:
    provider.delay = 0.02
    in_flight = 0
    peak = 0
    original = provider.fetch_timeline

    async def tracking(*args, **kwargs):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        try:
            return await original(*args, **kwargs)
        finally:
            in_flight -= 1

    provider.fetch_timeline = tracking
    for n in range(6):
        provider.set_current(f"City{n}", temperature=n)
    gateway = WeatherGateway(provider, MemoryCache(), fanout=2)

    results = await gateway.batch_fetch([City(f"City{n}") for n in range(6)])

    assert len(results) == 6
    assert peak <= 2


@pytest.mark.asyncio
async def test_get_forecast_limits_horizon_from_cache(provider, gateway) -> None:
    provider.forecasts["Paris"] = [
        (f"2024-06-0{day}T00:00:00Z", {"temperature": day}) for day in range(1, 6)
    ]

    three = await gateway.get_forecast(City("Paris"), horizon_days=3)
    one = await gateway.get_forecast(City("Paris"), horizon_days=1)

    assert [p.reading.values["temperature"] for p in three] == [1, 2, 3, 4]
    assert [p.reading.values["temperature"] for p in one] == [1, 2]
    assert provider.calls_for("Paris") == 1


@pytest.mark.asyncio
async def test_concurrent_get_current_is_last_write_wins(provider, gateway) -> None:
    provider.set_current("Paris", temperature=20)
    readings = await asyncio.gather(
        gateway.get_current(City("Paris")), gateway.get_current(City("Paris"))
    )
    assert all(r.value_for("temperature") == 20 for r in readings)
