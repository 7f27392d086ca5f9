"""Weather reading and evaluation result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .alerts import Parameter


@dataclass(frozen=True)
class WeatherReading:
    """Observed or forecast values for one location at one instant."""

    values: dict[str, float] = field(default_factory=dict)
    time: str | None = None

    def value_for(self, parameter: Parameter | str) -> float | None:
        key = parameter.value if isinstance(parameter, Parameter) else str(parameter)
        return self.values.get(key)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = dict(self.values)
        data["time"] = self.time
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "WeatherReading":
        values: dict[str, float] = {}
        for param in Parameter:
            raw = data.get(param.value)
            if raw is None:
                continue
            try:
                values[param.value] = float(raw)
            except (TypeError, ValueError):
                continue
        time = data.get("time")
        return cls(values=values, time=str(time) if time is not None else None)


@dataclass(frozen=True)
class ForecastPoint:
    time: str
    reading: WeatherReading


@dataclass
class AlertEvaluation:
    alert_id: str
    triggered: bool
    value: float | None
    threshold: float
    parameter: str
    weather_data: WeatherReading


@dataclass
class ForecastAnalysis:
    time: str
    will_trigger: bool
    value: float | None
    parameter: str


@dataclass
class EvaluationSummary:
    """Outcome counters for one bulk evaluation pass."""

    total: int = 0
    locations: int = 0
    fetched: int = 0
    triggered: int = 0
    resolved: int = 0
    errors: int = 0
    skipped: int = 0
    finished_at: datetime | None = None
