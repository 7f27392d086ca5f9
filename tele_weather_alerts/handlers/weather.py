from __future__ import annotations

import html
import logging

from telegram.constants import ParseMode

from .. import config, view
from ..errors import ConfigurationError, WeatherAlertError, WeatherFetchError
from ..locations import parse_location_text
from .common import get_services, guard, reply_error

logger = logging.getLogger(__name__)

_USAGE = "Usage: /weather <city | lat,lon> [forecast]"


async def cmd_weather(update, context) -> None:
    """Current conditions or the hourly forecast for any location."""
    if not await guard(update, context):
        return
    args = [a.strip() for a in (context.args or []) if a.strip()]
    forecast = bool(args) and args[-1].lower() == "forecast"
    if forecast:
        args = args[:-1]
    if not args:
        await update.message.reply_text(_USAGE)
        return

    try:
        location = parse_location_text(" ".join(args))
    except ConfigurationError as e:
        await update.message.reply_text(
            f"Invalid location: {html.escape(str(e))}", parse_mode=ParseMode.HTML
        )
        return

    services = get_services(context)
    try:
        if forecast:
            points = await services.gateway.get_forecast(
                location, config.FORECAST_DAYS
            )
            msg = view.render_weather_forecast(location, points)
        else:
            reading = await services.gateway.get_current(location)
            msg = view.render_weather(location, reading)
    except WeatherFetchError as e:
        await update.message.reply_text(
            f"⚠️ Weather unavailable: {view.code(e)}", parse_mode=ParseMode.HTML
        )
        return
    except WeatherAlertError as e:
        await reply_error(update, "/weather failed", e, logger)
        return

    for part in view.chunk(msg):
        await update.message.reply_text(part, parse_mode=ParseMode.HTML)
