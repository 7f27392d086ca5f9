"""In-process broadcast of alert state changes."""

from __future__ import annotations

import asyncio
import logging
import secrets

from .models.notification import AlertNotification

logger = logging.getLogger(__name__)

_DEFAULT_BUFFER = 100

# Queued by `close` to wake a consumer blocked in `get`.
_CLOSED = object()


class Subscription:
    """A bounded per-subscriber buffer attached to a `NotificationHub`.

    Iterate with ``async for`` or call `get`; `close` detaches it. Events
    published while the buffer is full are dropped for this subscriber only.
    """

    def __init__(self, hub: "NotificationHub", user_id: int | None, maxsize: int):
        self.id = secrets.token_hex(4)
        self.user_id = user_id
        self.dropped = 0
        self._hub = hub
        self._queue: asyncio.Queue[object] = asyncio.Queue(
            maxsize=max(1, maxsize)
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def wants(self, notification: AlertNotification) -> bool:
        return self.user_id is None or notification.user_id == self.user_id

    def offer(self, notification: AlertNotification) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug(
                "Subscriber %s buffer full, dropping %s for alert %s",
                self.id,
                notification.type,
                notification.alert_id,
            )
            return False
        return True

    def pending(self) -> int:
        return self._queue.qsize()

    async def get(self) -> AlertNotification | None:
        """Next notification, or None once closed and drained."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        return None if item is _CLOSED else item  # type: ignore[return-value]

    def get_nowait(self) -> AlertNotification | None:
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return None if item is _CLOSED else item  # type: ignore[return-value]

    def close(self) -> None:
        self._hub.unsubscribe(self)

    def _shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # A full buffer means nobody is blocked waiting.
            pass

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> AlertNotification:
        notification = await self.get()
        if notification is None:
            raise StopAsyncIteration
        return notification

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class NotificationHub:
    """Fire-and-forget multicast of `AlertNotification` events."""

    def __init__(self, buffer_size: int = _DEFAULT_BUFFER) -> None:
        self.buffer_size = buffer_size
        self._subscribers: dict[str, Subscription] = {}

    def subscribe(
        self, user_id: int | None = None, maxsize: int | None = None
    ) -> Subscription:
        """Attach a subscriber; ``user_id=None`` receives every event."""
        sub = Subscription(self, user_id, maxsize or self.buffer_size)
        self._subscribers[sub.id] = sub
        logger.debug("Subscriber %s attached (user=%s)", sub.id, user_id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if self._subscribers.pop(sub.id, None) is not None:
            logger.debug("Subscriber %s detached", sub.id)
        sub._shutdown()

    def subscriber_count(self, user_id: int | None = None) -> int:
        if user_id is None:
            return len(self._subscribers)
        return sum(1 for s in self._subscribers.values() if s.user_id == user_id)

    def publish(self, notification: AlertNotification) -> int:
        """Deliver to every matching subscriber without blocking.

        Returns the number of subscribers that accepted the event.
        """
        logger.info(
            "Sending notification: %s for alert %s",
            notification.type,
            notification.alert_id,
        )
        delivered = 0
        for sub in list(self._subscribers.values()):
            if sub.wants(notification) and sub.offer(notification):
                delivered += 1
        return delivered
