from __future__ import annotations

import logging

from telegram.constants import ParseMode

from .. import config, view
from ..errors import ConfigurationError, WeatherAlertError, WeatherFetchError
from ..weather import FORECAST_FETCH_DAYS
from .common import get_services, guard, owned_alert, reply_error

logger = logging.getLogger(__name__)


async def _alert_from_args(update, context, usage: str):
    if not context.args:
        await update.message.reply_text(usage)
        return None, None
    services = get_services(context)
    alert = await owned_alert(update, services, context.args[0].strip())
    return services, alert


async def cmd_check(update, context) -> None:
    """Evaluate one alert right now and show the result."""
    if not await guard(update, context):
        return
    services, alert = await _alert_from_args(update, context, "Usage: /check <id>")
    if alert is None:
        return
    try:
        evaluation = await services.engine.evaluate_one(alert.id)
    except ConfigurationError as e:
        await update.message.reply_text(
            f"⚠️ Alert is misconfigured: {view.code(e)}", parse_mode=ParseMode.HTML
        )
        return
    except WeatherFetchError as e:
        await update.message.reply_text(
            f"⚠️ Weather unavailable: {view.code(e)}", parse_mode=ParseMode.HTML
        )
        return
    except WeatherAlertError as e:
        await reply_error(update, "/check failed", e, logger)
        return
    await update.message.reply_text(
        view.render_evaluation(alert, evaluation), parse_mode=ParseMode.HTML
    )


async def cmd_evaluate(update, context) -> None:
    """Queue a background evaluation for one alert."""
    if not await guard(update, context):
        return
    services, alert = await _alert_from_args(update, context, "Usage: /evaluate <id>")
    if alert is None:
        return
    try:
        job = services.queue.enqueue_evaluate(alert.id)
    except WeatherAlertError as e:
        await reply_error(update, "/evaluate failed", e, logger)
        return
    await update.message.reply_text(
        f"⏳ Queued evaluation of {view.code(alert.id)} as job {view.code(job.id)}",
        parse_mode=ParseMode.HTML,
    )


async def cmd_process(update, context) -> None:
    """Queue a bulk evaluation of every active alert."""
    if not await guard(update, context):
        return
    services = get_services(context)
    try:
        job = services.scheduler.run_now()
    except WeatherAlertError as e:
        await reply_error(update, "/process failed", e, logger)
        return
    await update.message.reply_text(
        f"⏳ Queued processing of all active alerts as job {view.code(job.id)}",
        parse_mode=ParseMode.HTML,
    )


async def cmd_forecast(update, context) -> None:
    if not await guard(update, context):
        return
    services, alert = await _alert_from_args(
        update, context, "Usage: /forecast <id> [days]"
    )
    if alert is None:
        return
    days = config.FORECAST_DAYS
    if len(context.args) > 1:
        try:
            days = max(1, min(FORECAST_FETCH_DAYS, int(context.args[1])))
        except ValueError:
            await update.message.reply_text(
                f"Days must be a number between 1 and {FORECAST_FETCH_DAYS}."
            )
            return
    try:
        analysis = await services.engine.analyze_forecast(alert.id, days)
    except WeatherAlertError as e:
        await reply_error(update, "/forecast failed", e, logger)
        return
    for part in view.chunk(view.render_forecast(alert, analysis)):
        await update.message.reply_text(part, parse_mode=ParseMode.HTML)


async def cmd_refresh(update, context) -> None:
    """Drop cached weather for an alert's location."""
    if not await guard(update, context):
        return
    services, alert = await _alert_from_args(update, context, "Usage: /refresh <id>")
    if alert is None:
        return
    try:
        await services.gateway.invalidate(alert.location)
    except WeatherAlertError as e:
        await reply_error(update, "/refresh failed", e, logger)
        return
    await update.message.reply_text(
        f"🔄 Cleared cached weather for {view.code(alert.id)}",
        parse_mode=ParseMode.HTML,
    )
