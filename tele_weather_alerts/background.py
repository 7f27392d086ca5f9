"""Background jobs (started once per Application)."""

from __future__ import annotations

import asyncio
import logging

from telegram.constants import ParseMode
from telegram.ext import Application

from . import view
from .models.bot_state import BOT_STATE_KEY, BotState
from .models.notification import AlertNotification
from .notifications import NotificationHub

logger = logging.getLogger(__name__)

_TASK_DELIVERY = "notification_delivery"


def _get_state(app: Application) -> BotState:
    return app.bot_data.setdefault(BOT_STATE_KEY, BotState())


def ensure_started(app: Application) -> None:
    """Start queue workers, the scheduler and Telegram delivery (idempotent)."""
    state = _get_state(app)
    if state.services is None:
        logger.warning("Services not initialized; background jobs not started")
        return
    state.services.start()
    task = state.tasks.get(_TASK_DELIVERY)
    if isinstance(task, asyncio.Task) and not task.done():
        return
    state.tasks[_TASK_DELIVERY] = asyncio.create_task(
        _delivery_loop(app, state.services.hub)
    )


async def stop_all(app: Application) -> None:
    state = _get_state(app)
    tasks = [t for t in state.tasks.values() if isinstance(t, asyncio.Task)]
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    state.tasks.clear()
    if state.services is not None:
        await state.services.stop()


async def deliver(bot, notification: AlertNotification) -> None:
    """Send one notification to its owner's private chat."""
    await bot.send_message(
        chat_id=notification.user_id,
        text=view.render_notification(notification),
        parse_mode=ParseMode.HTML,
    )


async def _delivery_loop(app: Application, hub: NotificationHub) -> None:
    logger.info("Starting notification delivery loop")
    async with hub.subscribe() as sub:
        async for notification in sub:
            try:
                await deliver(app.bot, notification)
            except Exception:
                logger.exception(
                    "Failed sending %s for alert %s to chat_id=%s",
                    notification.type,
                    notification.alert_id,
                    notification.user_id,
                )
