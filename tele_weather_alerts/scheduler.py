"""Periodic trigger for bulk alert evaluation."""

from __future__ import annotations

import asyncio
import logging
import time

from .jobs import AlertJobQueue
from .models.jobs import Job

logger = logging.getLogger(__name__)


class AlertScheduler:
    """Enqueue one `process-all-alerts` job every ``interval_s`` seconds.

    Ticks do not wait for the previous job to finish. The period is measured
    from tick start; ticks missed while the loop was starved are skipped.
    """

    def __init__(
        self,
        queue: AlertJobQueue,
        interval_s: float = 5 * 60,
        run_immediately: bool = False,
    ) -> None:
        self.queue = queue
        self.interval_s = max(0.01, interval_s)
        self.run_immediately = run_immediately
        self.ticks = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    def run_now(self) -> Job:
        logger.info("Running scheduled alert check")
        return self.queue.enqueue_process_all()

    async def _loop(self) -> None:
        logger.info("Starting alert scheduler (interval=%ss)", self.interval_s)
        next_tick = time.monotonic()
        if not self.run_immediately:
            next_tick += self.interval_s
        while True:
            await asyncio.sleep(max(0.0, next_tick - time.monotonic()))
            try:
                self.run_now()
                self.ticks += 1
            except Exception:
                logger.exception("Failed to enqueue scheduled alert check")
            next_tick += self.interval_s
            now = time.monotonic()
            while next_tick <= now:
                next_tick += self.interval_s
