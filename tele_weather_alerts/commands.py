"""Command registry (single source of truth for help + wiring)."""

from __future__ import annotations

from .models.command_spec import CommandSpec, Group


_INFO_COMMANDS = (
    CommandSpec("start", "Info", "/start", "show help", "cmd_start"),
    CommandSpec("help", "Info", "/help", "this menu", "cmd_help"),
    CommandSpec("whoami", "Info", "/whoami", "show chat and user info", "cmd_whoami"),
)

_ALERT_COMMANDS = (
    CommandSpec(
        "alerts",
        "Alerts",
        "/alerts [list|add|edit|remove|pause|resume|history]",
        "manage your weather alerts",
        "cmd_alerts",
        aliases=("alert",),
    ),
)

_EVALUATION_COMMANDS = (
    CommandSpec(
        "check",
        "Evaluation",
        "/check <id>",
        "evaluate an alert now",
        "cmd_check",
    ),
    CommandSpec(
        "evaluate",
        "Evaluation",
        "/evaluate <id>",
        "queue a background evaluation",
        "cmd_evaluate",
    ),
    CommandSpec(
        "process",
        "Evaluation",
        "/process",
        "queue evaluation of all active alerts",
        "cmd_process",
    ),
    CommandSpec(
        "forecast",
        "Evaluation",
        "/forecast <id> [days]",
        "when the alert would trigger in the forecast",
        "cmd_forecast",
    ),
    CommandSpec(
        "refresh",
        "Evaluation",
        "/refresh <id>",
        "drop cached weather for an alert's location",
        "cmd_refresh",
    ),
)

_WEATHER_COMMANDS = (
    CommandSpec(
        "weather",
        "Weather",
        "/weather <city | lat,lon> [forecast]",
        "current weather or hourly forecast for a location",
        "cmd_weather",
    ),
)

_QUEUE_COMMANDS = (
    CommandSpec(
        "queue",
        "Queue",
        "/queue [cancel <job_id>]",
        "job queue status",
        "cmd_queue",
    ),
)


COMMANDS: tuple[CommandSpec, ...] = (
    *_INFO_COMMANDS,
    *_ALERT_COMMANDS,
    *_EVALUATION_COMMANDS,
    *_WEATHER_COMMANDS,
    *_QUEUE_COMMANDS,
)


GROUP_ORDER: tuple[Group, ...] = (
    "Alerts",
    "Evaluation",
    "Weather",
    "Queue",
    "Info",
)
