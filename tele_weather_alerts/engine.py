"""Alert evaluation engine: weather reading -> status transition -> notify.

Every write for one alert runs under that alert's lock so that a bulk pass
and an ad-hoc evaluation of the same alert cannot interleave their
read-evaluate-write sequences. Weather fetches happen outside the lock.

Within a transition the order is: history write, status write, publish.
A persistence failure therefore never leaves a published notification
behind, and a retried transition reuses an already-open history entry
instead of opening a second one.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable

from .conditions import evaluate, is_known_operator, operator_symbol
from .errors import (
    AlertNotFoundError,
    ConfigurationError,
    PersistenceError,
    WeatherAlertError,
)
from .locations import key_of, location_to_dict
from .models.alerts import Alert, AlertStatus
from .models.notification import AlertNotification, NotificationType
from .models.weather import (
    AlertEvaluation,
    EvaluationSummary,
    ForecastAnalysis,
    WeatherReading,
)
from .notifications import NotificationHub
from .store import AlertStore
from .weather import WeatherGateway

logger = logging.getLogger(__name__)

TRIGGERED = "triggered"
RESOLVED = "resolved"
RECOVERED = "recovered"
UNCHANGED = "unchanged"
FAILED = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_condition(alert: Alert, reading: WeatherReading) -> tuple[bool, float]:
    """Evaluate an alert's condition against a reading.

    Raises:
        ConfigurationError: unknown operator or the reading lacks the
            monitored parameter.
    """
    if not is_known_operator(alert.operator):
        raise ConfigurationError(f"Unknown operator: {alert.operator}")
    value = reading.value_for(alert.parameter)
    if value is None:
        raise ConfigurationError(
            f"No {alert.parameter.value} value in weather data"
        )
    return evaluate(value, alert.operator, alert.threshold), value


class AlertEngine:
    def __init__(
        self,
        store: AlertStore,
        gateway: WeatherGateway,
        hub: NotificationHub,
        forecast_days: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.hub = hub
        self.forecast_days = forecast_days
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def alert_lock(self, alert_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(alert_id)
        if lock is None:
            lock = self._locks[alert_id] = asyncio.Lock()
        self._lock_users[alert_id] = self._lock_users.get(alert_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[alert_id] -= 1
            if self._lock_users[alert_id] <= 0:
                self._lock_users.pop(alert_id, None)
                self._locks.pop(alert_id, None)

    def _notify(
        self,
        kind: NotificationType,
        alert: Alert,
        value: float | None,
        now: datetime,
        error: str | None = None,
    ) -> None:
        self.hub.publish(
            AlertNotification(
                type=kind,
                alert_id=alert.id,
                user_id=alert.user_id,
                alert_name=alert.name,
                location=location_to_dict(alert.location),
                parameter=alert.parameter.value,
                value=value,
                threshold=alert.threshold,
                timestamp=now,
                error=error,
            )
        )

    async def _mark_error(self, alert_id: str, exc: BaseException) -> None:
        """Move an alert to ERROR. Caller must hold the alert's lock."""
        alert = await self.store.find_by_id(alert_id)
        if alert is None:
            return
        now = self._clock()
        await self.store.update_status(alert_id, AlertStatus.ERROR, now)
        if alert.status is not AlertStatus.ERROR:
            logger.error("Alert %s moved to ERROR: %s", alert_id, exc)
            self._notify("alert_error", alert, None, now, error=str(exc))

    async def _transition(
        self, alert_id: str, reading: WeatherReading, active_only: bool = False
    ) -> tuple[AlertEvaluation, str] | None:
        """Run the state machine for one alert. Caller must hold its lock.

        Returns None when the alert vanished (or was deactivated during a bulk
        pass) between loading and locking.
        """
        alert = await self.store.find_by_id(alert_id)
        if alert is None or (active_only and not alert.is_active):
            return None

        try:
            triggered, value = check_condition(alert, reading)
        except ConfigurationError as exc:
            await self._mark_error(alert_id, exc)
            raise

        now = self._clock()
        snapshot = reading.to_dict()
        outcome = UNCHANGED

        if triggered and alert.status is not AlertStatus.TRIGGERED:
            if await self.store.find_open_history(alert_id) is None:
                await self.store.create_history(
                    alert_id, AlertStatus.TRIGGERED.value, snapshot, now
                )
            await self.store.update_status(alert_id, AlertStatus.TRIGGERED, now)
            logger.info(
                "Alert %s TRIGGERED: %s %s %s (value %s)",
                alert_id,
                alert.parameter.value,
                operator_symbol(alert.operator),
                alert.threshold,
                value,
            )
            self._notify("alert_triggered", alert, value, now)
            outcome = TRIGGERED
        elif not triggered and alert.status is not AlertStatus.NOT_TRIGGERED:
            entry = await self.store.find_open_history(alert_id)
            if entry is not None:
                await self.store.resolve_history(entry.id, now)
            await self.store.update_status(alert_id, AlertStatus.NOT_TRIGGERED, now)
            if alert.status is AlertStatus.TRIGGERED or entry is not None:
                logger.info("Alert %s resolved", alert_id)
                self._notify("alert_resolved", alert, value, now)
                outcome = RESOLVED
            else:
                logger.info("Alert %s recovered from ERROR", alert_id)
                outcome = RECOVERED
        else:
            await self.store.update_status(alert_id, alert.status, now)

        evaluation = AlertEvaluation(
            alert_id=alert_id,
            triggered=triggered,
            value=value,
            threshold=alert.threshold,
            parameter=alert.parameter.value,
            weather_data=reading,
        )
        return evaluation, outcome

    async def evaluate_one(self, alert_id: str) -> AlertEvaluation:
        """Evaluate a single alert against freshly fetched current weather.

        Runs regardless of the alert's active flag. Fetch and configuration
        failures move the alert to ERROR and are re-raised to the caller.
        """
        alert = await self.store.find_by_id(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)

        try:
            reading = await self.gateway.get_current(alert.location)
        except PersistenceError:
            raise
        except Exception as exc:
            logger.warning("Weather fetch failed for alert %s: %s", alert_id, exc)
            async with self.alert_lock(alert_id):
                await self._mark_error(alert_id, exc)
            raise

        async with self.alert_lock(alert_id):
            result = await self._transition(alert_id, reading)
        if result is None:
            raise AlertNotFoundError(alert_id)
        return result[0]

    async def _evaluate_batched(
        self, alert: Alert, reading: WeatherReading
    ) -> str | None:
        async with self.alert_lock(alert.id):
            try:
                result = await self._transition(alert.id, reading, active_only=True)
            except PersistenceError:
                raise
            except ConfigurationError:
                return FAILED
            except Exception as exc:
                logger.exception("Error processing alert %s", alert.id)
                await self._mark_error(alert.id, exc)
                return FAILED
        return result[1] if result else None

    async def _error_unkeyable(self, alert: Alert, exc: WeatherAlertError) -> str:
        async with self.alert_lock(alert.id):
            await self._mark_error(alert.id, exc)
        return FAILED

    async def evaluate_all(self) -> EvaluationSummary:
        """Evaluate every active alert, fetching weather once per location."""
        logger.info("Processing all active alerts...")
        alerts = await self.store.find_active()
        summary = EvaluationSummary(total=len(alerts))
        logger.info("Found %d active alerts to process", len(alerts))

        by_location: dict[str, list[Alert]] = defaultdict(list)
        unkeyable: list[tuple[Alert, ConfigurationError]] = []
        for alert in alerts:
            try:
                by_location[key_of(alert.location)].append(alert)
            except ConfigurationError as exc:
                unkeyable.append((alert, exc))
        summary.locations = len(by_location)

        readings = await self.gateway.batch_fetch_keys(by_location.keys())
        summary.fetched = len(readings)

        tasks = [self._error_unkeyable(alert, exc) for alert, exc in unkeyable]
        for location_key, group in by_location.items():
            reading = readings.get(location_key)
            if reading is None:
                logger.warning("No weather data for location %s", location_key)
                summary.skipped += len(group)
                continue
            tasks.extend(self._evaluate_batched(alert, reading) for alert in group)

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
            if outcome == TRIGGERED:
                summary.triggered += 1
            elif outcome == RESOLVED:
                summary.resolved += 1
            elif outcome == FAILED:
                summary.errors += 1
            elif outcome is None:
                summary.skipped += 1

        summary.finished_at = self._clock()
        logger.info(
            "Finished processing alerts: %d triggered, %d resolved, %d errors, "
            "%d skipped",
            summary.triggered,
            summary.resolved,
            summary.errors,
            summary.skipped,
        )
        return summary

    async def analyze_forecast(
        self, alert_id: str, horizon_days: int | None = None
    ) -> list[ForecastAnalysis]:
        """Preview when an alert would fire over the forecast horizon.

        Read-only: the alert's stored status is not touched.
        """
        alert = await self.store.find_by_id(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        if not is_known_operator(alert.operator):
            raise ConfigurationError(f"Unknown operator: {alert.operator}")

        points = await self.gateway.get_forecast(
            alert.location, horizon_days or self.forecast_days
        )
        analysis: list[ForecastAnalysis] = []
        for point in points:
            value = point.reading.value_for(alert.parameter)
            analysis.append(
                ForecastAnalysis(
                    time=point.time,
                    will_trigger=value is not None
                    and evaluate(value, alert.operator, alert.threshold),
                    value=value,
                    parameter=alert.parameter.value,
                )
            )
        return analysis
