"""Queue job dataclasses."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Literal

JobKind = Literal["process-all-alerts", "evaluate-single-alert"]
JobState = Literal["waiting", "active", "completed", "failed", "cancelled"]

PROCESS_ALL = "process-all-alerts"
EVALUATE_ONE = "evaluate-single-alert"


@dataclass
class Job:
    id: str
    kind: str
    alert_id: str | None = None
    state: str = "waiting"
    attempts: int = 0
    created_at: float = 0.0
    started_at: float | None = None
    finished_at: float | None = None
    last_error: str | None = None
    result: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Job":
        return cls(
            id=str(data["id"]),
            kind=str(data["kind"]),
            alert_id=data.get("alert_id"),  # type: ignore[arg-type]
            state=str(data.get("state") or "waiting"),
            attempts=int(data.get("attempts") or 0),
            created_at=float(data.get("created_at") or 0.0),
            started_at=data.get("started_at"),  # type: ignore[arg-type]
            finished_at=data.get("finished_at"),  # type: ignore[arg-type]
            last_error=data.get("last_error"),  # type: ignore[arg-type]
            result=data.get("result"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class QueueStats:
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
