"""
In-memory fan-out broadcaster.

publish() serialises the state once and hands it to every registered
subscriber's queue. Each WebSocket connection drains its own queue, so
per-subscriber order equals publish order.
"""
from __future__ import annotations

import logging

from voltway.broadcast.registry import Subscriber, SubscriberRegistry
from voltway.exceptions import TransportError
from voltway.models import DeviceState, station_update_message

log = logging.getLogger(__name__)


class StationBroadcaster:
    def __init__(self, registry: SubscriberRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> SubscriberRegistry:
        return self._registry

    async def publish(self, state: DeviceState) -> int:
        """Push ``state`` to every current subscriber. Returns the delivered count.

        Never raises: a failing subscriber is logged, disconnected and dropped
        from the registry, and the fan-out continues.
        """
        message = station_update_message(state)
        delivered = 0
        for subscriber in self._registry.list():
            try:
                subscriber.deliver(message)
            except TransportError as exc:
                log.warning("Dropping subscriber %s: %s", subscriber.id, exc)
                self._drop(subscriber)
            except Exception:
                log.exception("Unexpected error pushing to subscriber %s", subscriber.id)
                self._drop(subscriber)
            else:
                delivered += 1
        return delivered

    def send_to(self, subscriber: Subscriber, state: DeviceState) -> None:
        """Targeted push (catch-up / explicit request). Raises TransportError."""
        subscriber.deliver(station_update_message(state))

    def subscriber_count(self) -> int:
        return len(self._registry)

    def _drop(self, subscriber: Subscriber) -> None:
        subscriber.disconnect()
        self._registry.remove(subscriber)
