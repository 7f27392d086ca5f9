"""Exception types shared by the evaluation pipeline."""

from __future__ import annotations


class WeatherAlertError(Exception):
    """Base class for all tele_weather_alerts errors."""

    retryable: bool = False


class ConfigurationError(WeatherAlertError):
    """An alert is misconfigured (bad operator, parameter or location)."""


class AlertNotFoundError(WeatherAlertError):
    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert with ID {alert_id} not found")
        self.alert_id = alert_id


class WeatherFetchError(WeatherAlertError):
    """Upstream weather provider failed or timed out."""

    retryable = True


class PersistenceError(WeatherAlertError):
    retryable = True


class WebhookSignatureError(WeatherAlertError):
    pass


class WebhookPayloadError(WeatherAlertError):
    pass
