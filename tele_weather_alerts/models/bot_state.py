"""Bot runtime state (services and background tasks)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..services import Services


@dataclass
class BotState:
    """Per-Application state kept in ``app.bot_data``."""

    services: "Services | None" = None
    tasks: dict[str, object] = field(default_factory=dict)


BOT_STATE_KEY = "state"
