"""Alert and alert-history persistence."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import secrets
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from .errors import ConfigurationError, PersistenceError
from .locations import location_to_dict, parse_location
from .models.alerts import (
    Alert,
    AlertHistoryEntry,
    AlertStatus,
    Location,
    Operator,
    Parameter,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {"name", "location", "parameter", "operator", "threshold", "is_active"}
)


class AlertStore(Protocol):
    async def find_active(self) -> list[Alert]: ...

    async def find_by_id(self, alert_id: str) -> Alert | None: ...

    async def find_by_user(self, user_id: int) -> list[Alert]: ...

    async def create(
        self,
        user_id: int,
        name: str,
        location: Location,
        parameter: Parameter,
        operator: Operator,
        threshold: float,
        is_active: bool = True,
    ) -> Alert: ...

    async def update(self, alert_id: str, **fields: object) -> Alert | None: ...

    async def delete(self, alert_id: str) -> bool: ...

    async def update_status(
        self, alert_id: str, status: AlertStatus, last_checked: datetime
    ) -> bool: ...

    async def create_history(
        self,
        alert_id: str,
        status: str,
        weather_data: dict[str, object],
        triggered_at: datetime,
    ) -> AlertHistoryEntry: ...

    async def find_open_history(self, alert_id: str) -> AlertHistoryEntry | None: ...

    async def resolve_history(self, entry_id: str, resolved_at: datetime) -> bool: ...

    async def history_for(
        self, alert_id: str, limit: int = 10
    ) -> list[AlertHistoryEntry]: ...


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(raw: object) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError:
        return None


def _alert_to_dict(alert: Alert) -> dict[str, object]:
    operator = alert.operator
    if isinstance(operator, Operator):
        operator = operator.value
    return {
        "id": alert.id,
        "user_id": alert.user_id,
        "name": alert.name,
        "location": location_to_dict(alert.location),
        "parameter": alert.parameter.value,
        "operator": operator,
        "threshold": alert.threshold,
        "is_active": alert.is_active,
        "status": alert.status.value,
        "last_checked": _ts(alert.last_checked),
        "created_at": _ts(alert.created_at),
    }


def _alert_from_dict(data: dict[str, object]) -> Alert:
    raw_operator = str(data.get("operator") or "")
    try:
        operator: Operator | str = Operator(raw_operator)
    except ValueError:
        operator = raw_operator
    try:
        status = AlertStatus(str(data.get("status") or AlertStatus.NOT_TRIGGERED.value))
    except ValueError:
        status = AlertStatus.ERROR
    return Alert(
        id=str(data["id"]),
        user_id=int(data["user_id"]),  # type: ignore[arg-type]
        name=str(data.get("name") or ""),
        location=parse_location(data.get("location")),
        parameter=Parameter(str(data["parameter"])),
        operator=operator,
        threshold=float(data["threshold"]),  # type: ignore[arg-type]
        is_active=bool(data.get("is_active", True)),
        status=status,
        last_checked=_parse_ts(data.get("last_checked")),
        created_at=_parse_ts(data.get("created_at")),
    )


def _history_to_dict(entry: AlertHistoryEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "alert_id": entry.alert_id,
        "status": entry.status,
        "weather_data": entry.weather_data,
        "triggered_at": _ts(entry.triggered_at),
        "resolved_at": _ts(entry.resolved_at),
    }


def _history_from_dict(data: dict[str, object]) -> AlertHistoryEntry:
    return AlertHistoryEntry(
        id=str(data["id"]),
        alert_id=str(data["alert_id"]),
        status=str(data.get("status") or ""),
        weather_data=dict(data.get("weather_data") or {}),  # type: ignore[arg-type]
        triggered_at=_parse_ts(data.get("triggered_at")),
        resolved_at=_parse_ts(data.get("resolved_at")),
    )


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_ts(entry: AlertHistoryEntry) -> datetime:
    return entry.triggered_at or _EPOCH


class JsonAlertStore:
    """In-memory alert store persisted to a single JSON file.

    Pass ``path=None`` for a purely in-memory store.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path else None
        self._alerts: dict[str, Alert] = {}
        self._history: dict[str, AlertHistoryEntry] = {}
        self._lock = asyncio.Lock()

    def load(self) -> None:
        """Load persisted alerts and history from disk."""
        if self._path is None or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text())
        except (OSError, ValueError):
            logger.exception("Failed to load alert store from %s", self._path)
            return
        for raw in data.get("alerts", []):
            try:
                alert = _alert_from_dict(raw)
            except (ConfigurationError, KeyError, TypeError, ValueError):
                logger.warning("Skipping unreadable alert record: %s", raw)
                continue
            self._alerts[alert.id] = alert
        for raw in data.get("history", []):
            try:
                entry = _history_from_dict(raw)
            except (KeyError, TypeError):
                logger.warning("Skipping unreadable history record: %s", raw)
                continue
            if entry.alert_id in self._alerts:
                self._history[entry.id] = entry
        logger.info(
            "Loaded %d alerts and %d history entries from %s",
            len(self._alerts),
            len(self._history),
            self._path,
        )

    def _commit(self, undo) -> None:
        """Persist the current state, reverting the in-memory change on failure."""
        try:
            self._save()
        except PersistenceError:
            undo()
            raise

    def _save(self) -> None:
        if self._path is None:
            return
        data = {
            "alerts": [_alert_to_dict(a) for a in self._alerts.values()],
            "history": [_history_to_dict(h) for h in self._history.values()],
        }
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2))
            os.replace(tmp, self._path)
        except OSError as e:
            raise PersistenceError(f"Failed to save alert store: {e}") from e

    async def find_active(self) -> list[Alert]:
        return [replace(a) for a in self._alerts.values() if a.is_active]

    async def find_by_id(self, alert_id: str) -> Alert | None:
        alert = self._alerts.get(alert_id)
        return replace(alert) if alert else None

    async def find_by_user(self, user_id: int) -> list[Alert]:
        alerts = [replace(a) for a in self._alerts.values() if a.user_id == user_id]
        alerts.sort(key=lambda a: a.created_at or _EPOCH)
        return alerts

    async def create(
        self,
        user_id: int,
        name: str,
        location: Location,
        parameter: Parameter,
        operator: Operator,
        threshold: float,
        is_active: bool = True,
    ) -> Alert:
        alert = Alert(
            id=secrets.token_hex(4),
            user_id=user_id,
            name=name,
            location=location,
            parameter=parameter,
            operator=operator,
            threshold=float(threshold),
            is_active=is_active,
            created_at=datetime.now(timezone.utc),
        )
        async with self._lock:
            while alert.id in self._alerts:
                alert.id = secrets.token_hex(4)
            self._alerts[alert.id] = alert
            self._commit(lambda: self._alerts.pop(alert.id, None))
        logger.info("Created alert %s for user %s", alert.id, user_id)
        return replace(alert)

    async def update(self, alert_id: str, **fields: object) -> Alert | None:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            names = ", ".join(sorted(unknown))
            raise ConfigurationError(f"Fields not editable: {names}")
        async with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                return None
            updated = replace(alert, **fields)  # type: ignore[arg-type]
            self._alerts[alert_id] = updated
            self._commit(lambda: self._alerts.__setitem__(alert_id, alert))
        return replace(updated)

    async def delete(self, alert_id: str) -> bool:
        async with self._lock:
            alert = self._alerts.pop(alert_id, None)
            if alert is None:
                return False
            removed = {
                h.id: h for h in self._history.values() if h.alert_id == alert_id
            }
            for entry_id in removed:
                self._history.pop(entry_id, None)

            def _undo() -> None:
                self._alerts[alert_id] = alert
                self._history.update(removed)

            self._commit(_undo)
        logger.info("Deleted alert %s", alert_id)
        return True

    async def update_status(
        self, alert_id: str, status: AlertStatus, last_checked: datetime
    ) -> bool:
        async with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                return False
            self._alerts[alert_id] = replace(
                alert, status=status, last_checked=last_checked
            )
            self._commit(lambda: self._alerts.__setitem__(alert_id, alert))
        return True

    async def create_history(
        self,
        alert_id: str,
        status: str,
        weather_data: dict[str, object],
        triggered_at: datetime,
    ) -> AlertHistoryEntry:
        entry = AlertHistoryEntry(
            id=secrets.token_hex(6),
            alert_id=alert_id,
            status=status,
            weather_data=dict(weather_data),
            triggered_at=triggered_at,
        )
        async with self._lock:
            self._history[entry.id] = entry
            self._commit(lambda: self._history.pop(entry.id, None))
        return replace(entry)

    async def find_open_history(self, alert_id: str) -> AlertHistoryEntry | None:
        open_entries = [
            h for h in self._history.values() if h.alert_id == alert_id and h.is_open
        ]
        if not open_entries:
            return None
        return replace(max(open_entries, key=_sort_ts))

    async def resolve_history(self, entry_id: str, resolved_at: datetime) -> bool:
        async with self._lock:
            entry = self._history.get(entry_id)
            if entry is None:
                return False
            self._history[entry_id] = replace(entry, resolved_at=resolved_at)
            self._commit(lambda: self._history.__setitem__(entry_id, entry))
        return True

    async def history_for(
        self, alert_id: str, limit: int = 10
    ) -> list[AlertHistoryEntry]:
        entries = [replace(h) for h in self._history.values() if h.alert_id == alert_id]
        entries.sort(key=_sort_ts, reverse=True)
        return entries[: max(0, limit)]
