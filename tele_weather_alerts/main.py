"""Entrypoint for running the Telegram bot from the package.

This module wires up the Application, registers handlers and runs polling.
"""

from __future__ import annotations

import logging

from telegram import BotCommand
from telegram.ext import Application, CommandHandler

from . import config
from .background import ensure_started, stop_all
from .commands import COMMANDS
from .handlers import dispatch
from .logger import setup_logging
from .models.bot_state import BOT_STATE_KEY, BotState
from .services import build_services

logger = logging.getLogger(__name__)


def build_application() -> Application:
    if config.TOKEN is None:
        raise RuntimeError("BOT_TOKEN environment variable is not set")

    app = (
        Application.builder()
        .token(config.TOKEN)
        .post_init(on_startup)
        .post_shutdown(on_shutdown)
        .build()
    )

    state = app.bot_data.setdefault(BOT_STATE_KEY, BotState())
    state.services = build_services(config.settings)

    for spec in COMMANDS:
        fn = getattr(dispatch, spec.handler)
        triggers = [spec.name, *spec.aliases]
        app.add_handler(CommandHandler(triggers, fn))

    return app


async def register_bot_commands(app: Application) -> None:
    """Register bot commands for Telegram autocomplete."""
    try:
        bot_commands = [BotCommand(spec.name, spec.description) for spec in COMMANDS]
        await app.bot.set_my_commands(bot_commands)
        logger.info("Registered %d commands for autocomplete", len(bot_commands))
    except Exception as e:
        logger.warning("Failed to register bot commands: %s", e)


async def on_startup(app: Application) -> None:
    try:
        ensure_started(app)
    except Exception as e:
        logger.warning("Failed to start background tasks: %s", e)
    await register_bot_commands(app)


async def on_shutdown(app: Application) -> None:
    logger.info("Stopping background tasks")
    await stop_all(app)


def run() -> None:
    setup_logging()
    logger.info("Starting tele_weather_alerts")
    app = build_application()

    # run polling; keep the stop_signals None so container shutdown behaves normally
    app.run_polling(stop_signals=None)


if __name__ == "__main__":
    run()
