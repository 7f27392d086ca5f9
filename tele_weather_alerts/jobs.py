"""Durable in-process job queue for alert evaluation work."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import secrets
import time
from collections import deque
from pathlib import Path

from .engine import AlertEngine
from .errors import AlertNotFoundError, ConfigurationError, PersistenceError
from .models.jobs import EVALUATE_ONE, PROCESS_ALL, Job, QueueStats

logger = logging.getLogger(__name__)

PERMANENT_ERRORS = (AlertNotFoundError, ConfigurationError)


class AlertJobQueue:
    """Runs `process-all-alerts` and `evaluate-single-alert` jobs.

    Waiting and active jobs are journalled to ``journal_path`` so a restart
    re-queues anything that had not finished (at-least-once delivery).
    Finished jobs are kept in bounded lists for inspection only.
    """

    def __init__(
        self,
        engine: AlertEngine,
        journal_path: Path | str | None = None,
        concurrency: int = 5,
        keep_completed: int = 100,
        keep_failed: int = 50,
        max_attempts: int = 3,
        backoff_s: float = 5.0,
    ) -> None:
        self.engine = engine
        self.concurrency = max(1, concurrency)
        self.max_attempts = max(1, max_attempts)
        self.backoff_s = max(0.0, backoff_s)
        self._journal = Path(journal_path) if journal_path else None
        self._jobs: dict[str, Job] = {}
        self._completed: deque[Job] = deque(maxlen=max(0, keep_completed))
        self._failed: deque[Job] = deque(maxlen=max(0, keep_failed))
        self._pending: asyncio.Queue[str] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self._retries: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return any(not w.done() for w in self._workers)

    def _save_journal(self) -> None:
        if self._journal is None:
            return
        data = {"jobs": [job.to_dict() for job in self._jobs.values()]}
        tmp = self._journal.with_suffix(self._journal.suffix + ".tmp")
        try:
            self._journal.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2))
            os.replace(tmp, self._journal)
        except OSError as e:
            raise PersistenceError(f"Failed to save job journal: {e}") from e

    def _checkpoint(self) -> None:
        """Journal a state change from inside a worker; failures are logged."""
        try:
            self._save_journal()
        except PersistenceError:
            logger.exception("Job journal write failed")

    def _load_journal(self) -> int:
        if self._journal is None or not self._journal.exists():
            return 0
        try:
            data = json.loads(self._journal.read_text())
        except (OSError, ValueError):
            logger.exception("Failed to read job journal %s", self._journal)
            return 0
        restored = 0
        for raw in data.get("jobs", []):
            try:
                job = Job.from_dict(raw)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping unreadable job record: %s", raw)
                continue
            if job.id in self._jobs:
                continue
            # Interrupted while active: run it again.
            job.state = "waiting"
            job.started_at = None
            self._jobs[job.id] = job
            restored += 1
        return restored

    def _add(self, kind: str, alert_id: str | None = None) -> Job:
        job = Job(
            id=secrets.token_hex(6),
            kind=kind,
            alert_id=alert_id,
            created_at=time.time(),
        )
        self._jobs[job.id] = job
        try:
            self._save_journal()
        except PersistenceError:
            self._jobs.pop(job.id, None)
            raise
        self._pending.put_nowait(job.id)
        logger.info("Queued job %s (%s, alert=%s)", job.id, kind, alert_id)
        return job

    def enqueue_process_all(self) -> Job:
        return self._add(PROCESS_ALL)

    def enqueue_evaluate(self, alert_id: str) -> Job:
        return self._add(EVALUATE_ONE, alert_id)

    def get(self, job_id: str) -> Job | None:
        job = self._jobs.get(job_id)
        if job is not None:
            return job
        for finished in (*self._completed, *self._failed):
            if finished.id == job_id:
                return finished
        return None

    def cancel(self, job_id: str) -> bool:
        """Cancel a job that has not started yet. Active jobs are left alone."""
        job = self._jobs.get(job_id)
        if job is None or job.state != "waiting":
            return False
        self._jobs.pop(job_id, None)
        job.state = "cancelled"
        job.finished_at = time.time()
        self._failed.append(job)
        self._checkpoint()
        logger.info("Cancelled job %s", job_id)
        return True

    def stats(self) -> QueueStats:
        states = [job.state for job in self._jobs.values()]
        return QueueStats(
            waiting=states.count("waiting"),
            active=states.count("active"),
            completed=len(self._completed),
            failed=sum(1 for job in self._failed if job.state == "failed"),
        )

    def recent(self, limit: int = 10) -> list[Job]:
        """Most recently finished jobs, newest first."""
        finished = [*self._completed, *self._failed]
        finished.sort(key=lambda j: j.finished_at or 0.0, reverse=True)
        return finished[: max(0, limit)]

    async def _execute(self, job: Job) -> str:
        if job.kind == PROCESS_ALL:
            summary = await self.engine.evaluate_all()
            return (
                f"{summary.total} alerts, {summary.triggered} triggered, "
                f"{summary.resolved} resolved, {summary.errors} errors"
            )
        if job.kind == EVALUATE_ONE:
            if not job.alert_id:
                raise ConfigurationError("evaluate job without alert id")
            evaluation = await self.engine.evaluate_one(job.alert_id)
            return "triggered" if evaluation.triggered else "not triggered"
        raise ConfigurationError(f"Unknown job kind: {job.kind}")

    def _finish(self, job: Job, state: str) -> None:
        self._jobs.pop(job.id, None)
        job.state = state
        job.finished_at = time.time()
        (self._completed if state == "completed" else self._failed).append(job)
        self._checkpoint()

    async def _retry_later(self, job_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        job = self._jobs.get(job_id)
        if job is not None and job.state == "waiting":
            self._pending.put_nowait(job_id)

    def _schedule_retry(self, job: Job) -> None:
        delay = self.backoff_s * 2 ** (job.attempts - 1)
        job.state = "waiting"
        self._checkpoint()
        logger.warning(
            "Job %s failed (attempt %d/%d), retrying in %.1fs",
            job.id,
            job.attempts,
            self.max_attempts,
            delay,
        )
        task = asyncio.create_task(self._retry_later(job.id, delay))
        self._retries.add(task)
        task.add_done_callback(self._retries.discard)

    async def _run(self, job: Job) -> None:
        job.state = "active"
        job.attempts += 1
        job.started_at = time.time()
        self._checkpoint()
        try:
            job.result = await self._execute(job)
        except asyncio.CancelledError:
            job.state = "waiting"
            job.started_at = None
            self._checkpoint()
            raise
        except Exception as exc:
            job.last_error = str(exc)
            if isinstance(exc, PERMANENT_ERRORS) or job.attempts >= self.max_attempts:
                logger.error("Job %s (%s) failed: %s", job.id, job.kind, exc)
                self._finish(job, "failed")
            else:
                self._schedule_retry(job)
        else:
            logger.info("Job %s (%s) completed: %s", job.id, job.kind, job.result)
            self._finish(job, "completed")

    async def _worker(self, n: int) -> None:
        logger.debug("Queue worker %d started", n)
        while True:
            job_id = await self._pending.get()
            try:
                job = self._jobs.get(job_id)
                if job is None or job.state != "waiting":
                    continue
                await self._run(job)
            finally:
                self._pending.task_done()

    def start(self) -> None:
        if self.running:
            return
        restored = self._load_journal()
        if restored:
            logger.info("Restored %d unfinished jobs from journal", restored)
        self._pending = asyncio.Queue()
        for job in self._jobs.values():
            if job.state == "waiting":
                self._pending.put_nowait(job.id)
        self._workers = [
            asyncio.create_task(self._worker(n)) for n in range(self.concurrency)
        ]
        logger.info("Alert job queue started (concurrency=%d)", self.concurrency)

    async def stop(self) -> None:
        """Stop workers; unfinished jobs stay journalled for the next start."""
        tasks = [*self._workers, *self._retries]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._retries.clear()
        self._checkpoint()
        logger.info("Alert job queue stopped (%d unfinished)", len(self._jobs))

    async def join(self, timeout: float | None = None) -> None:
        """Wait until no job is waiting or active."""

        async def _idle() -> None:
            while self._jobs:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_idle(), timeout)
