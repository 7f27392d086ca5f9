import asyncio

import pytest

from tele_weather_alerts.models.jobs import PROCESS_ALL
from tele_weather_alerts.scheduler import AlertScheduler


class RecordingQueue:
    def __init__(self) -> None:
        self.enqueued: list[str] = []

    def enqueue_process_all(self):
        self.enqueued.append(PROCESS_ALL)
        return PROCESS_ALL


@pytest.mark.asyncio
async def test_scheduler_enqueues_one_job_per_tick() -> None:
    queue = RecordingQueue()
    scheduler = AlertScheduler(queue, interval_s=0.05)
    scheduler.start()
    try:
        await asyncio.sleep(0.18)
    finally:
        await scheduler.stop()

    assert 2 <= len(queue.enqueued) <= 4
    assert scheduler.ticks == len(queue.enqueued)
    assert not scheduler.running


@pytest.mark.asyncio
async def test_scheduler_waits_a_full_interval_by_default() -> None:
    queue = RecordingQueue()
    scheduler = AlertScheduler(queue, interval_s=10)
    scheduler.start()
    await asyncio.sleep(0.02)
    await scheduler.stop()
    assert queue.enqueued == []


@pytest.mark.asyncio
async def test_run_immediately_and_run_now() -> None:
    queue = RecordingQueue()
    scheduler = AlertScheduler(queue, interval_s=10, run_immediately=True)
    scheduler.start()
    scheduler.start()
    await asyncio.sleep(0.02)
    await scheduler.stop()
    assert queue.enqueued == [PROCESS_ALL]

    scheduler.run_now()
    assert len(queue.enqueued) == 2


@pytest.mark.asyncio
async def test_scheduler_survives_enqueue_errors() -> None:
    class FailingQueue(RecordingQueue):
        def enqueue_process_all(self):
            super().enqueue_process_all()
            raise RuntimeError("journal broken")

    queue = FailingQueue()
    scheduler = AlertScheduler(queue, interval_s=0.03, run_immediately=True)
    scheduler.start()
    try:
        await asyncio.sleep(0.1)
    finally:
        await scheduler.stop()
    assert len(queue.enqueued) >= 2
