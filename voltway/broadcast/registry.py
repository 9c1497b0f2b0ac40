"""
Subscriber handles and the registry of connected push channels.

Each Subscriber owns one bounded asyncio.Queue. The broadcaster enqueues
messages without blocking; the connection's writer task drains the queue to
the socket, so one slow client never stalls the others.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Optional

from voltway.config import OVERFLOW_POLICIES, SUBSCRIBER_OVERFLOW_POLICY, SUBSCRIBER_QUEUE_SIZE
from voltway.exceptions import TransportError

log = logging.getLogger(__name__)


class Subscriber:
    def __init__(
        self,
        subscriber_id: Optional[str] = None,
        maxsize: int = SUBSCRIBER_QUEUE_SIZE,
        overflow_policy: str = SUBSCRIBER_OVERFLOW_POLICY,
    ) -> None:
        if overflow_policy not in OVERFLOW_POLICIES:
            raise ValueError(f"Unknown overflow policy: {overflow_policy}")
        self.id = subscriber_id or uuid.uuid4().hex
        self.overflow_policy = overflow_policy
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._connected = True

    def __repr__(self) -> str:
        return f"Subscriber({self.id!r}, connected={self._connected})"

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def deliver(self, message: dict[str, Any]) -> None:
        """Enqueue ``message`` for this subscriber. Never blocks.

        Raises TransportError if the subscriber is gone or its queue overflows
        under the ``disconnect`` policy.
        """
        if not self._connected:
            raise TransportError("subscriber disconnected", subscriber_id=self.id)
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            if self.overflow_policy != "drop_oldest":
                raise TransportError(
                    f"outbound queue full ({self._queue.maxsize} pending)",
                    subscriber_id=self.id,
                ) from None
            self._queue.get_nowait()
            self._queue.put_nowait(message)
            log.warning("Subscriber %s lagging — dropped oldest queued message", self.id)

    async def next_message(self, timeout: Optional[float] = None) -> Optional[dict[str, Any]]:
        """Wait for the next queued message; None on timeout."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def disconnect(self) -> bool:
        """Mark the handle dead. Returns True only for the first call."""
        if not self._connected:
            return False
        self._connected = False
        return True


class SubscriberRegistry:
    """Set of live subscribers keyed by id.

    Mutations are plain dict operations that never yield to the event loop,
    and ``list`` returns a copy, so a broadcast iterating a snapshot is
    unaffected by joins and leaves that happen meanwhile.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, Subscriber] = {}

    def add(self, subscriber: Subscriber) -> None:
        self._subscribers.setdefault(subscriber.id, subscriber)

    def remove(self, subscriber: Subscriber) -> bool:
        if self._subscribers.get(subscriber.id) is not subscriber:
            return False
        del self._subscribers[subscriber.id]
        return True

    def list(self) -> list[Subscriber]:
        return list(self._subscribers.values())

    def get(self, subscriber_id: str) -> Optional[Subscriber]:
        return self._subscribers.get(subscriber_id)

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber: Subscriber) -> bool:
        return self._subscribers.get(subscriber.id) is subscriber
