from __future__ import annotations

import logging

from telegram.constants import ParseMode

from .. import view
from .common import get_services, guard

logger = logging.getLogger(__name__)


async def cmd_queue(update, context) -> None:
    if not await guard(update, context):
        return
    services = get_services(context)
    args = [a.strip() for a in (context.args or []) if a.strip()]

    if args and args[0].lower() == "cancel":
        if len(args) < 2:
            await update.message.reply_text("Usage: /queue cancel <job_id>")
            return
        job_id = args[1]
        if services.queue.cancel(job_id):
            msg = f"🛑 Cancelled job {view.code(job_id)}"
        else:
            msg = f"Job {view.code(job_id)} is not waiting (or does not exist)."
        await update.message.reply_text(msg, parse_mode=ParseMode.HTML)
        return

    msg = view.render_queue_stats(
        services.queue.stats(),
        services.queue.recent(limit=5),
        services.scheduler.running,
    )
    await update.message.reply_text(msg, parse_mode=ParseMode.HTML)
