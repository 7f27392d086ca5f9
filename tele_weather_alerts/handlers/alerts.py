from __future__ import annotations

import html
import logging
import math

from telegram.constants import ParseMode

from .. import view
from ..conditions import normalize_operator, normalize_parameter, operator_symbol
from ..errors import ConfigurationError, WeatherAlertError
from ..locations import describe, parse_location_text
from ..models.alerts import Parameter
from .common import get_services, guard, owned_alert, reply_error

logger = logging.getLogger(__name__)

_EDIT_FIELDS = ("name", "location", "parameter", "operator", "threshold")
_EDIT_USAGE = (
    "Usage: /alerts edit &lt;id&gt; &lt;field&gt; &lt;value&gt;\n"
    f"<i>Fields:</i> {', '.join(_EDIT_FIELDS)}"
)
_ADD_USAGE = (
    "Usage: /alerts add &lt;parameter&gt; &lt;operator&gt; &lt;threshold&gt; "
    "&lt;city | lat,lon&gt;"
)
_USAGE = (
    "<i>Usage:</i>\n"
    "/alerts [list]\n"
    "/alerts add &lt;parameter&gt; &lt;operator&gt; &lt;threshold&gt; "
    "&lt;city | lat,lon&gt;\n"
    "/alerts edit &lt;id&gt; &lt;field&gt; &lt;value&gt;\n"
    "/alerts remove|pause|resume|history &lt;id&gt;\n"
    f"<i>Parameters:</i> {', '.join(p.value for p in Parameter)}\n"
    "<i>Operators:</i> &gt; &gt;= &lt; &lt;= = (or gt, gte, lt, lte, eq)"
)


def parse_threshold(raw: str) -> float | None:
    try:
        value = float(raw)
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def validate_field(field: str, raw: str) -> object:
    """Parse one user-supplied alert field.

    Raises:
        ConfigurationError: with an HTML-ready message for the reply.
    """
    if field == "name":
        name = raw.strip()
        if not name:
            raise ConfigurationError("Name cannot be empty.")
        return name
    if field == "parameter":
        parameter = normalize_parameter(raw)
        if parameter is None:
            names = ", ".join(p.value for p in Parameter)
            raise ConfigurationError(
                f"Unknown parameter. Use one of: {html.escape(names)}"
            )
        return parameter
    if field == "operator":
        operator = normalize_operator(raw)
        if operator is None:
            raise ConfigurationError(
                "Invalid operator. Use one of: &gt; &gt;= &lt; &lt;= ="
            )
        return operator
    if field == "threshold":
        threshold = parse_threshold(raw)
        if threshold is None:
            raise ConfigurationError(f"Invalid threshold: {html.escape(raw)}")
        return threshold
    if field == "location":
        try:
            return parse_location_text(raw)
        except ConfigurationError as e:
            raise ConfigurationError(
                f"Invalid location: {html.escape(str(e))}"
            ) from e
    raise ConfigurationError(
        f"Unknown field. Use one of: {', '.join(_EDIT_FIELDS)}"
    )


async def _cmd_add(update, services, args: list[str]) -> None:
    if len(args) < 5:
        await update.message.reply_text(_ADD_USAGE, parse_mode=ParseMode.HTML)
        return
    raw_fields = (
        ("parameter", args[1]),
        ("operator", args[2]),
        ("threshold", args[3]),
        ("location", " ".join(args[4:])),
    )
    try:
        fields = {name: validate_field(name, raw) for name, raw in raw_fields}
    except ConfigurationError as e:
        await update.message.reply_text(str(e), parse_mode=ParseMode.HTML)
        return

    parameter, operator = fields["parameter"], fields["operator"]
    name = (
        f"{parameter.value} {operator_symbol(operator)} {fields['threshold']:g} "
        f"@ {describe(fields['location'])}"
    )
    alert = await services.store.create(
        user_id=update.effective_user.id, name=name, **fields
    )
    await update.message.reply_text(
        view.render_alert_created(alert), parse_mode=ParseMode.HTML
    )


async def _cmd_edit(update, services, args: list[str]) -> None:
    if len(args) < 4:
        await update.message.reply_text(_EDIT_USAGE, parse_mode=ParseMode.HTML)
        return
    alert = await owned_alert(update, services, args[1])
    if alert is None:
        return
    field = args[2].lower()
    try:
        value = validate_field(field, " ".join(args[3:]))
    except ConfigurationError as e:
        await update.message.reply_text(str(e), parse_mode=ParseMode.HTML)
        return

    updated = await services.store.update(alert.id, **{field: value})
    if updated is None:
        await owned_alert(update, services, alert.id)
        return
    logger.info("Alert %s %s changed by user %s", alert.id, field, alert.user_id)
    await update.message.reply_text(
        f"✏️ Updated alert\n{view.render_alert_line(updated)}",
        parse_mode=ParseMode.HTML,
    )


async def _cmd_remove(update, services, alert_id: str) -> None:
    alert = await owned_alert(update, services, alert_id)
    if alert is None:
        return
    await services.store.delete(alert.id)
    await update.message.reply_text(
        f"🗑 Removed alert {view.code(alert.id)}", parse_mode=ParseMode.HTML
    )


async def _cmd_set_active(update, services, alert_id: str, active: bool) -> None:
    alert = await owned_alert(update, services, alert_id)
    if alert is None:
        return
    await services.store.update(alert.id, is_active=active)
    label = "resumed ▶️" if active else "paused ⏸"
    await update.message.reply_text(
        f"Alert {view.code(alert.id)} {label}", parse_mode=ParseMode.HTML
    )


async def _cmd_history(update, services, alert_id: str) -> None:
    alert = await owned_alert(update, services, alert_id)
    if alert is None:
        return
    entries = await services.store.history_for(alert.id)
    await update.message.reply_text(
        view.render_history(alert, entries), parse_mode=ParseMode.HTML
    )


async def cmd_alerts(update, context) -> None:
    if not await guard(update, context):
        return
    services = get_services(context)
    args = [a.strip() for a in (context.args or []) if a.strip()]
    action = args[0].lower() if args else "list"

    try:
        if action == "list":
            alerts = await services.store.find_by_user(update.effective_user.id)
            for part in view.chunk(view.render_alert_list(alerts)):
                await update.message.reply_text(part, parse_mode=ParseMode.HTML)
            return

        if action == "add":
            await _cmd_add(update, services, args)
            return

        if action == "edit":
            await _cmd_edit(update, services, args)
            return

        if action in {"remove", "pause", "resume", "history"}:
            if len(args) < 2:
                await update.message.reply_text(f"Usage: /alerts {action} <id>")
                return
            alert_id = args[1]
            if action == "remove":
                await _cmd_remove(update, services, alert_id)
            elif action == "history":
                await _cmd_history(update, services, alert_id)
            else:
                await _cmd_set_active(update, services, alert_id, action == "resume")
            return
    except WeatherAlertError as e:
        await reply_error(update, f"/alerts {action} failed", e, logger)
        return

    await update.message.reply_text(_USAGE, parse_mode=ParseMode.HTML)
