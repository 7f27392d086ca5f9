"""Dispatch layer: applies rate limiting then calls the real handlers."""

from __future__ import annotations

from . import alerts, evaluation, meta, queue, weather
from .common import rate_limit

# Meta
cmd_start = rate_limit(meta.cmd_start, name="start")
cmd_help = rate_limit(meta.cmd_help, name="help")
cmd_whoami = rate_limit(meta.cmd_whoami, name="whoami")

# Alerts
cmd_alerts = rate_limit(alerts.cmd_alerts, name="alerts")

# Evaluation
cmd_check = rate_limit(evaluation.cmd_check, name="check")
cmd_evaluate = rate_limit(evaluation.cmd_evaluate, name="evaluate")
cmd_process = rate_limit(evaluation.cmd_process, name="process")
cmd_forecast = rate_limit(evaluation.cmd_forecast, name="forecast")
cmd_refresh = rate_limit(evaluation.cmd_refresh, name="refresh")

# Weather
cmd_weather = rate_limit(weather.cmd_weather, name="weather")

# Queue
cmd_queue = rate_limit(queue.cmd_queue, name="queue")
