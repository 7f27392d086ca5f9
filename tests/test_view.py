"""Tests for view module."""

from datetime import datetime, timezone

from tele_weather_alerts import view
from tele_weather_alerts.models.alerts import (
    Alert,
    AlertHistoryEntry,
    AlertStatus,
    City,
    Coordinates,
    Operator,
    Parameter,
)
from tele_weather_alerts.models.jobs import Job, QueueStats
from tele_weather_alerts.models.notification import AlertNotification
from tele_weather_alerts.models.weather import ForecastAnalysis

WHEN = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _alert(**overrides) -> Alert:
    data = dict(
        id="abc",
        user_id=1,
        name="Hot <day>",
        location=City("Paris"),
        parameter=Parameter.TEMPERATURE,
        operator=Operator.GTE,
        threshold=30.0,
    )
    data.update(overrides)
    return Alert(**data)


def _notification(kind: str, **overrides) -> AlertNotification:
    data = dict(
        type=kind,
        alert_id="abc",
        user_id=1,
        alert_name="Hot",
        location={"lat": 37.77, "lon": -122.41},
        parameter="temperature",
        value=31.5,
        threshold=30.0,
        timestamp=WHEN,
    )
    data.update(overrides)
    return AlertNotification(**data)


def test_chunk_small_message() -> None:
    msg = "short message"
    chunks = view.chunk(msg, size=100)
    assert chunks == [msg]


def test_chunk_large_message() -> None:
    msg = "line1\nline2\nline3\nline4"
    chunks = view.chunk(msg, size=12)
    assert len(chunks) >= 2
    assert "".join(chunks).replace("\n", "") == msg.replace("\n", "")


def test_chunk_splits_overlong_line() -> None:
    chunks = view.chunk("x" * 25, size=10)
    assert chunks == ["x" * 10, "x" * 10, "x" * 5]


def test_alert_line_escapes_and_marks_paused() -> None:
    line = view.render_alert_line(_alert(is_active=False, status=AlertStatus.TRIGGERED))
    assert line.startswith("🔴")
    assert "Hot &lt;day&gt;" in line
    assert "temperature &gt;= 30" in line
    assert "(paused)" in line


def test_alert_list_empty_and_filled() -> None:
    assert view.render_alert_list([]) == "No alerts yet. Add one with /alerts add."
    text = view.render_alert_list([_alert(), _alert(id="def")])
    assert "Your alerts (2)" in text
    assert "<code>def</code>" in text


def test_render_notification_kinds() -> None:
    triggered = view.render_notification(_notification("alert_triggered"))
    assert triggered.startswith("🔴 Alert triggered: <b>Hot</b> @ 37.7700,-122.4100")
    assert "<code>31.5</code>" in triggered
    assert "2024-06-01 12:00 UTC" in triggered

    resolved = view.render_notification(_notification("alert_resolved"))
    assert resolved.startswith("🟢 Alert resolved")

    error = view.render_notification(
        _notification("alert_error", value=None, error="upstream <down>")
    )
    assert error.startswith("⚠️ Alert error")
    assert "upstream &lt;down&gt;" in error
    assert "<code>" not in error


def test_render_notification_bad_location_falls_back() -> None:
    text = view.render_notification(_notification("alert_triggered", location={}))
    assert "@ {}" in text


def test_render_forecast() -> None:
    alert = _alert()
    assert "No forecast data." in view.render_forecast(alert, [])

    quiet = [ForecastAnalysis("t1", False, 20.0, "temperature")]
    assert "Not expected to trigger in the next 1 hours" in view.render_forecast(
        alert, quiet
    )

    hits = [ForecastAnalysis(f"t{n}", True, 31.0, "temperature") for n in range(12)]
    text = view.render_forecast(alert, hits, limit=3)
    assert "12/12 forecast hours, first at t0" in text
    assert "…and 9 more" in text


def test_render_history() -> None:
    alert = _alert()
    assert "No trigger history." in view.render_history(alert, [])

    entries = [
        AlertHistoryEntry(
            id="h1",
            alert_id="abc",
            status="TRIGGERED",
            weather_data={"temperature": 31.0},
            triggered_at=WHEN,
        ),
        AlertHistoryEntry(
            id="h2",
            alert_id="abc",
            status="TRIGGERED",
            triggered_at=WHEN,
            resolved_at=WHEN,
        ),
    ]
    text = view.render_history(alert, entries)
    assert "(<code>31.0</code>), <b>open</b>" in text
    assert "resolved 2024-06-01 12:00 UTC" in text


def test_render_queue_stats() -> None:
    jobs = [
        Job(id="j1", kind="process-all-alerts", state="completed", result="2 alerts"),
        Job(
            id="j2",
            kind="evaluate-single-alert",
            alert_id="abc",
            state="failed",
            attempts=3,
            last_error="boom",
        ),
    ]
    text = view.render_queue_stats(QueueStats(waiting=1, failed=1), jobs, True)
    assert "Waiting: 1 | Active: 0" in text
    assert "Scheduler: running" in text
    assert "process-all-alerts: completed (2 alerts)" in text
    assert "failed after 3 attempts" in text
    assert "<i>boom</i>" in text


def test_render_coordinates_alert_created() -> None:
    alert = _alert(location=Coordinates(1.5, 2.25))
    assert "@ 1.5000,2.2500" in view.render_alert_created(alert)
