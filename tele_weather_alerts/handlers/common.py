"""Shared handler helpers: auth guard, rate limit, service lookup."""

from __future__ import annotations

import functools
import html
import logging
import time
from typing import TYPE_CHECKING, Callable

from telegram.constants import ParseMode

from .. import config
from ..models.alerts import Alert
from ..models.bot_state import BOT_STATE_KEY, BotState

if TYPE_CHECKING:
    from telegram import Update
    from telegram.ext import ContextTypes

    from ..services import Services

logger = logging.getLogger(__name__)


# Global rate limit (seconds) for all commands.
_last_command_ts = 0.0


def get_state(app) -> BotState:
    """Retrieve or initialize the bot state from application data."""
    return app.bot_data.setdefault(BOT_STATE_KEY, BotState())


def get_services(context) -> "Services":
    state = get_state(context.application)
    if state.services is None:
        raise RuntimeError("Services are not initialized")
    return state.services


async def reply_error(
    update: "Update", message: str, exc: Exception, log: logging.Logger | None = None
) -> None:
    (log or logger).exception(message)
    await update.message.reply_text(
        f"❌ Error: {html.escape(str(exc))}", parse_mode=ParseMode.HTML
    )


def allowed(update: "Update") -> bool:
    """Check if the update sender is authorized to use the bot.

    Args:
        update: Telegram Update object containing chat information

    Returns:
        True if the chat ID is in the ALLOWED list, False otherwise.

    Note:
        Returns False if ALLOWED_CHAT_IDS is empty or update has no chat.
        Alerts are delivered to the owner's private chat, so only private
        chats (chat_id == user_id) are accepted.
    """
    if not config.ALLOWED:
        return False
    if not update.effective_chat:
        return False
    chat_id = update.effective_chat.id
    effective_user = getattr(update, "effective_user", None)
    user_id = getattr(effective_user, "id", None)
    if user_id is None:
        return chat_id in config.ALLOWED
    return chat_id == user_id and user_id in config.ALLOWED


async def guard(update: "Update", context: "ContextTypes.DEFAULT_TYPE") -> bool:
    """Guard function to check authorization before executing commands.

    Returns:
        True if authorized, False otherwise. Sends unauthorized message on failure.
    """
    if allowed(update):
        return True
    if update and update.effective_chat:
        await update.effective_chat.send_message("⛔ Not authorized")
    return False


async def owned_alert(
    update: "Update", services: "Services", alert_id: str
) -> Alert | None:
    """Load an alert owned by the sender, replying when it is missing."""
    alert = await services.store.find_by_id(alert_id)
    if alert is None or alert.user_id != update.effective_user.id:
        await update.message.reply_text(
            f"Alert <code>{html.escape(alert_id)}</code> not found.",
            parse_mode=ParseMode.HTML,
        )
        return None
    return alert


def rate_limit(func: Callable, name: str | None = None) -> Callable:
    """Decorator to enforce global rate limiting on command handlers.

    Uses a global timestamp check; the limit applies across all commands.
    If it is exceeded the user is told how long to wait and the command is
    dropped.
    """

    command_name = name or func.__name__.removeprefix("cmd_")

    @functools.wraps(func)
    async def wrapper(
        update: "Update", context: "ContextTypes.DEFAULT_TYPE", *args, **kwargs
    ):
        global _last_command_ts
        now = time.monotonic()
        elapsed = now - _last_command_ts

        if elapsed < config.RATE_LIMIT_S:
            logger.debug("Rate limited /%s", command_name)
            try:
                if update and getattr(update, "effective_message", None):
                    await update.effective_message.reply_text(
                        f"⏱ Rate limit: please wait {config.RATE_LIMIT_S - elapsed:.1f}s",
                    )
            except Exception as e:
                logger.debug("rate-limit notice failed to send: %s", e)
            return

        _last_command_ts = now
        return await func(update, context, *args, **kwargs)

    return wrapper
