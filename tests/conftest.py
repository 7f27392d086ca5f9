"""Shared test fixtures and dummy classes."""

from __future__ import annotations

import asyncio
from typing import Any, Iterable

import pytest

from tele_weather_alerts.cache import MemoryCache
from tele_weather_alerts.engine import AlertEngine
from tele_weather_alerts.errors import WeatherFetchError
from tele_weather_alerts.models.alerts import City, Location, Operator, Parameter
from tele_weather_alerts.notifications import NotificationHub
from tele_weather_alerts.store import JsonAlertStore
from tele_weather_alerts.weather import WeatherGateway


class DummyChat:
    """Dummy Telegram chat for testing."""

    def __init__(self, chat_id: int, chat_type: str = "private") -> None:
        self.id = chat_id
        self.type = chat_type
        self.sent: list[str] = []

    async def send_message(self, text: str) -> None:
        self.sent.append(text)


class DummyUser:
    """Dummy Telegram user for testing."""

    def __init__(self, user_id: int, username: str | None = None) -> None:
        self.id = user_id
        self.username = username


class DummyMessage:
    """Dummy Telegram message for testing."""

    def __init__(self) -> None:
        self.replies: list[str] = []

    async def reply_text(self, text: str, **_: Any) -> None:
        self.replies.append(text)


class DummyUpdate:
    """Dummy Telegram update for testing."""

    def __init__(self, chat_id: int, user_id: int) -> None:
        self.effective_chat = DummyChat(chat_id)
        self.effective_user = DummyUser(user_id)
        self.message = DummyMessage()
        self.effective_message = self.message


class DummyBot:
    """Dummy Telegram bot recording outgoing messages."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []

    async def send_message(self, chat_id: int, text: str, **_: Any) -> None:
        self.sent.append((chat_id, text))


class DummyApplication:
    """Dummy Telegram application for testing."""

    def __init__(self) -> None:
        self.bot_data: dict[str, object] = {}
        self.bot = DummyBot()


class DummyContext:
    """Dummy Telegram context for testing."""

    def __init__(
        self, args: list[str] | None = None, application: DummyApplication | None = None
    ) -> None:
        self.args = args or []
        self.application = application or DummyApplication()


def timeline_response(
    intervals: Iterable[tuple[str, dict[str, float]]], timestep: str = "current"
) -> dict[str, Any]:
    """Build a Tomorrow.io /timelines response body."""
    return {
        "data": {
            "timelines": [
                {
                    "timestep": timestep,
                    "intervals": [
                        {"startTime": start, "values": dict(values)}
                        for start, values in intervals
                    ],
                }
            ]
        }
    }


class FakeProvider:
    """Weather provider double keyed by location string."""

    def __init__(self) -> None:
        self.current: dict[str, dict[str, float] | Exception] = {}
        self.forecasts: dict[str, list[tuple[str, dict[str, float]]]] = {}
        self.calls: list[tuple[str, str]] = []
        self.delay = 0.0

    def set_current(self, location: str, **values: float) -> None:
        self.current[location] = values

    def fail(self, location: str, exc: Exception | None = None) -> None:
        self.current[location] = exc or WeatherFetchError("upstream down")

    async def fetch_timeline(
        self,
        location: str,
        fields: Iterable[str],
        timestep: str,
        horizon_days: int | None = None,
    ) -> dict[str, Any]:
        self.calls.append((location, timestep))
        if self.delay:
            await asyncio.sleep(self.delay)
        if timestep == "1h":
            return timeline_response(self.forecasts.get(location, []), "1h")
        result = self.current.get(location)
        if result is None:
            raise WeatherFetchError(f"no data for {location}")
        if isinstance(result, Exception):
            raise result
        return timeline_response([("2024-06-01T12:00:00Z", result)])

    def calls_for(self, location: str) -> int:
        return sum(1 for loc, _ in self.calls if loc == location)


async def add_alert(
    store: JsonAlertStore,
    location: Location | None = None,
    parameter: Parameter = Parameter.TEMPERATURE,
    operator: Operator | str = Operator.GT,
    threshold: float = 15.0,
    user_id: int = 123,
    name: str = "Warm",
    is_active: bool = True,
):
    return await store.create(
        user_id=user_id,
        name=name,
        location=location or City("Paris"),
        parameter=parameter,
        operator=operator,  # type: ignore[arg-type]
        threshold=threshold,
        is_active=is_active,
    )


@pytest.fixture
def store() -> JsonAlertStore:
    return JsonAlertStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def gateway(provider: FakeProvider) -> WeatherGateway:
    return WeatherGateway(provider, MemoryCache(), fetch_timeout_s=1.0)


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def engine(store, gateway, hub) -> AlertEngine:
    return AlertEngine(store, gateway, hub)
