"""Alert, history and location dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union


class Parameter(str, Enum):
    TEMPERATURE = "temperature"
    WIND_SPEED = "windSpeed"
    HUMIDITY = "humidity"
    PRECIPITATION = "precipitationIntensity"
    CLOUD_COVER = "cloudCover"
    VISIBILITY = "visibility"


class Operator(str, Enum):
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"


class AlertStatus(str, Enum):
    NOT_TRIGGERED = "NOT_TRIGGERED"
    TRIGGERED = "TRIGGERED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class City:
    name: str


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float


Location = Union[City, Coordinates]


@dataclass
class Alert:
    id: str
    user_id: int
    name: str
    location: Location
    parameter: Parameter
    # Kept as str so a corrupt stored value surfaces as a configuration error.
    operator: Operator | str
    threshold: float
    is_active: bool = True
    status: AlertStatus = AlertStatus.NOT_TRIGGERED
    last_checked: datetime | None = None
    created_at: datetime | None = None


@dataclass
class AlertHistoryEntry:
    id: str
    alert_id: str
    status: str
    weather_data: dict[str, object] = field(default_factory=dict)
    triggered_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == AlertStatus.TRIGGERED.value and self.resolved_at is None
