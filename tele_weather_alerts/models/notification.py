"""Alert state-change notification dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

NotificationType = Literal["alert_triggered", "alert_resolved", "alert_error"]


@dataclass(frozen=True)
class AlertNotification:
    type: NotificationType
    alert_id: str
    user_id: int
    alert_name: str
    location: dict[str, object]
    parameter: str
    value: float | None
    threshold: float
    timestamp: datetime
    error: str | None = None
