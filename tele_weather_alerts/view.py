"""View layer for formatting Telegram messages (HTML)."""

from __future__ import annotations

import html
from datetime import datetime

from .conditions import operator_symbol
from .errors import ConfigurationError
from .locations import describe, parse_location
from .models.alerts import Alert, AlertHistoryEntry, Location, Parameter
from .models.jobs import Job, QueueStats
from .models.notification import AlertNotification
from .models.weather import (
    AlertEvaluation,
    EvaluationSummary,
    ForecastAnalysis,
    ForecastPoint,
    WeatherReading,
)

_STATUS_ICONS = {
    "TRIGGERED": "🔴",
    "NOT_TRIGGERED": "🟢",
    "ERROR": "⚠️",
}


def bold(text: str) -> str:
    return f"<b>{html.escape(str(text))}</b>"


def code(text: str) -> str:
    return f"<code>{html.escape(str(text))}</code>"


def chunk(msg: str, size: int = 4000) -> list[str]:
    """Split message into chunks ensuring no chunk exceeds size limit."""
    if len(msg) <= size:
        return [msg]

    lines = msg.splitlines()
    chunks: list[str] = []
    current = ""
    for line in lines:
        if len(line) > size:
            if current:
                chunks.append(current)
                current = ""
            start = 0
            while start < len(line):
                chunks.append(line[start : start + size])
                start += size
            continue
        added_length = len(line) + (1 if current else 0)
        if len(current) + added_length > size and current:
            chunks.append(current)
            current = line
        else:
            current = f"{current}\n{line}" if current else line
    if current:
        chunks.append(current)
    return chunks


def format_value(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:g}"


def _format_dt(value: datetime | None) -> str:
    if value is None:
        return "never"
    return value.strftime("%Y-%m-%d %H:%M UTC")


def render_condition(alert: Alert) -> str:
    return (
        f"{alert.parameter.value} {operator_symbol(alert.operator)} "
        f"{format_value(alert.threshold)}"
    )


def render_alert_line(alert: Alert) -> str:
    icon = _STATUS_ICONS.get(alert.status.value, "•")
    paused = " <i>(paused)</i>" if not alert.is_active else ""
    return (
        f"{icon} {code(alert.id)} {bold(alert.name)}: "
        f"{html.escape(render_condition(alert))} @ "
        f"{html.escape(describe(alert.location))}{paused}"
    )


def render_alert_list(alerts: list[Alert]) -> str:
    if not alerts:
        return "No alerts yet. Add one with /alerts add."
    lines = [bold(f"Your alerts ({len(alerts)})")]
    lines.extend(render_alert_line(a) for a in alerts)
    return "\n".join(lines)


def render_alert_created(alert: Alert) -> str:
    return (
        f"✅ Added alert {code(alert.id)}: {bold(alert.name)}\n"
        f"{html.escape(render_condition(alert))} @ "
        f"{html.escape(describe(alert.location))}"
    )


def render_evaluation(alert: Alert, evaluation: AlertEvaluation) -> str:
    state = "🔴 TRIGGERED" if evaluation.triggered else "🟢 not triggered"
    lines = [
        f"{bold(alert.name)} {code(alert.id)}: {state}",
        f"{html.escape(evaluation.parameter)} = "
        f"{code(format_value(evaluation.value))} "
        f"(threshold {html.escape(operator_symbol(alert.operator))} "
        f"{format_value(evaluation.threshold)})",
    ]
    if evaluation.weather_data.time:
        lines.append(f"<i>Observed at {html.escape(evaluation.weather_data.time)}</i>")
    return "\n".join(lines)


def render_notification(notification: AlertNotification) -> str:
    try:
        where = describe(parse_location(notification.location))
    except ConfigurationError:
        where = str(notification.location)
    name = bold(notification.alert_name)
    place = html.escape(where)
    if notification.type == "alert_triggered":
        head = f"🔴 Alert triggered: {name} @ {place}"
    elif notification.type == "alert_resolved":
        head = f"🟢 Alert resolved: {name} @ {place}"
    else:
        head = f"⚠️ Alert error: {name} @ {place}"
    lines = [head]
    if notification.value is not None:
        lines.append(
            f"{html.escape(notification.parameter)} = "
            f"{code(format_value(notification.value))} "
            f"(threshold {format_value(notification.threshold)})"
        )
    if notification.error:
        lines.append(f"<i>{html.escape(notification.error)}</i>")
    lines.append(f"<i>{_format_dt(notification.timestamp)}</i>")
    return "\n".join(lines)


def render_forecast(
    alert: Alert, analysis: list[ForecastAnalysis], limit: int = 10
) -> str:
    lines = [f"{bold('Forecast for')} {bold(alert.name)} {code(alert.id)}"]
    lines.append(html.escape(render_condition(alert)))
    if not analysis:
        lines.append("No forecast data.")
        return "\n".join(lines)
    hits = [a for a in analysis if a.will_trigger]
    if not hits:
        lines.append(f"🟢 Not expected to trigger in the next {len(analysis)} hours.")
        return "\n".join(lines)
    lines.append(
        f"🔴 Expected to trigger in {len(hits)}/{len(analysis)} forecast hours, "
        f"first at {html.escape(hits[0].time)}"
    )
    for item in hits[:limit]:
        lines.append(f"• {html.escape(item.time)}: {code(format_value(item.value))}")
    if len(hits) > limit:
        lines.append(f"<i>…and {len(hits) - limit} more</i>")
    return "\n".join(lines)


def render_history(alert: Alert, entries: list[AlertHistoryEntry]) -> str:
    lines = [f"{bold('History for')} {bold(alert.name)} {code(alert.id)}"]
    if not entries:
        lines.append("No trigger history.")
        return "\n".join(lines)
    for entry in entries:
        resolved = (
            f"resolved {_format_dt(entry.resolved_at)}"
            if entry.resolved_at
            else "<b>open</b>"
        )
        value = entry.weather_data.get(alert.parameter.value)
        value_txt = f" ({code(value)})" if value is not None else ""
        triggered = _format_dt(entry.triggered_at)
        lines.append(f"• triggered {triggered}{value_txt}, {resolved}")
    return "\n".join(lines)


def render_summary(summary: EvaluationSummary) -> str:
    return (
        f"{summary.total} alerts across {summary.locations} locations: "
        f"{summary.triggered} triggered, {summary.resolved} resolved, "
        f"{summary.errors} errors, {summary.skipped} skipped"
    )


def render_job(job: Job) -> str:
    target = f" {code(job.alert_id)}" if job.alert_id else ""
    line = f"{code(job.id)} {html.escape(job.kind)}{target}: {html.escape(job.state)}"
    if job.attempts > 1:
        line += f" after {job.attempts} attempts"
    if job.state == "failed" and job.last_error:
        line += f"\n  <i>{html.escape(job.last_error)}</i>"
    elif job.result:
        line += f" ({html.escape(job.result)})"
    return line


def render_queue_stats(
    stats: QueueStats, recent: list[Job], scheduler_running: bool
) -> str:
    lines = [
        bold("Alert queue"),
        f"Waiting: {stats.waiting} | Active: {stats.active}",
        f"Completed: {stats.completed} | Failed: {stats.failed}",
        f"Scheduler: {'running' if scheduler_running else 'stopped'}",
    ]
    if recent:
        lines.append("")
        lines.append(bold("Recent jobs"))
        lines.extend(render_job(job) for job in recent)
    return "\n".join(lines)


def _reading_values(reading: WeatherReading) -> list[tuple[str, float]]:
    values: list[tuple[str, float]] = []
    for param in Parameter:
        value = reading.value_for(param)
        if value is not None:
            values.append((param.value, value))
    return values


def render_weather(location: Location, reading: WeatherReading) -> str:
    lines = [f"🌤 {bold('Weather for')} {bold(describe(location))}"]
    values = _reading_values(reading)
    if not values:
        lines.append("No values reported.")
    for name, value in values:
        lines.append(f"{html.escape(name)}: {code(format_value(value))}")
    if reading.time:
        lines.append(f"<i>Observed at {html.escape(reading.time)}</i>")
    return "\n".join(lines)


def render_weather_forecast(
    location: Location, points: list[ForecastPoint], limit: int = 24
) -> str:
    """Hourly forecast, one line per hour, capped at ``limit`` hours."""
    lines = [f"📅 {bold('Forecast for')} {bold(describe(location))}"]
    if not points:
        lines.append("No forecast data.")
        return "\n".join(lines)
    for point in points[:limit]:
        summary = ", ".join(
            f"{name} {format_value(value)}"
            for name, value in _reading_values(point.reading)
        )
        lines.append(f"• {html.escape(point.time)}: {html.escape(summary or 'n/a')}")
    if len(points) > limit:
        lines.append(f"<i>…and {len(points) - limit} more hours</i>")
    return "\n".join(lines)
