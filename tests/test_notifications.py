import asyncio
from datetime import datetime, timezone

import pytest

from tele_weather_alerts.models.notification import AlertNotification
from tele_weather_alerts.notifications import NotificationHub


def make_notification(user_id: int = 1, alert_id: str = "a1", kind="alert_triggered"):
    return AlertNotification(
        type=kind,
        alert_id=alert_id,
        user_id=user_id,
        alert_name="Warm",
        location={"city": "Paris"},
        parameter="temperature",
        value=20.0,
        threshold=15.0,
        timestamp=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_publish_reaches_matching_subscribers() -> None:
    hub = NotificationHub()
    everyone = hub.subscribe()
    user_one = hub.subscribe(user_id=1)
    user_two = hub.subscribe(user_id=2)

    delivered = hub.publish(make_notification(user_id=1))

    assert delivered == 2
    assert (await everyone.get()).alert_id == "a1"
    assert (await user_one.get()).user_id == 1
    assert user_two.pending() == 0


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_dropped() -> None:
    hub = NotificationHub()
    assert hub.publish(make_notification()) == 0
    late = hub.subscribe()
    assert late.get_nowait() is None


@pytest.mark.asyncio
async def test_full_buffer_drops_for_that_subscriber_only() -> None:
    hub = NotificationHub()
    slow = hub.subscribe(maxsize=1)
    fast = hub.subscribe(maxsize=10)

    hub.publish(make_notification(alert_id="first"))
    hub.publish(make_notification(alert_id="second"))

    assert slow.dropped == 1
    assert slow.pending() == 1
    assert (await slow.get()).alert_id == "first"
    assert fast.pending() == 2


@pytest.mark.asyncio
async def test_close_detaches_and_ends_iteration() -> None:
    hub = NotificationHub()
    async with hub.subscribe(user_id=1) as sub:
        assert hub.subscriber_count() == 1
        assert hub.subscriber_count(user_id=1) == 1
        hub.publish(make_notification())
    assert sub.closed
    assert hub.subscriber_count() == 0
    assert hub.publish(make_notification()) == 0

    received = [n async for n in sub]
    assert [n.alert_id for n in received] == ["a1"]


@pytest.mark.asyncio
async def test_async_iteration_receives_in_order() -> None:
    hub = NotificationHub()
    sub = hub.subscribe()
    received: list[str] = []

    async def consume() -> None:
        async for notification in sub:
            received.append(notification.alert_id)
            if len(received) == 3:
                sub.close()

    task = asyncio.create_task(consume())
    for n in range(3):
        hub.publish(make_notification(alert_id=f"a{n}"))
    await asyncio.wait_for(task, 1)

    assert received == ["a0", "a1", "a2"]


@pytest.mark.asyncio
async def test_close_wakes_a_blocked_consumer() -> None:
    hub = NotificationHub()
    sub = hub.subscribe(user_id=1)

    consumer = asyncio.create_task(_collect(sub))
    await asyncio.sleep(0.01)
    assert not consumer.done()

    sub.close()
    received = await asyncio.wait_for(consumer, 0.5)

    assert received == []
    assert hub.subscriber_count() == 0
    assert await sub.get() is None


@pytest.mark.asyncio
async def test_close_delivers_buffered_events_first() -> None:
    hub = NotificationHub()
    sub = hub.subscribe(maxsize=2)
    hub.publish(make_notification(alert_id="a"))
    hub.publish(make_notification(alert_id="b"))

    sub.close()

    received = await asyncio.wait_for(_collect(sub), 0.5)
    assert [n.alert_id for n in received] == ["a", "b"]


async def _collect(sub) -> list:
    return [n async for n in sub]
