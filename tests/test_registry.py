"""
Tests for subscriber handles and the subscriber registry
"""

import pytest

from voltway.broadcast.registry import Subscriber, SubscriberRegistry
from voltway.exceptions import TransportError


def test_add_is_idempotent_per_id(registry):
    sub = Subscriber("a")
    registry.add(sub)
    registry.add(sub)
    registry.add(Subscriber("a"))
    assert len(registry) == 1
    assert registry.get("a") is sub


def test_remove_absent_is_noop(registry):
    sub = Subscriber("a")
    assert registry.remove(sub) is False
    registry.add(sub)
    assert registry.remove(sub) is True
    assert registry.remove(sub) is False
    assert len(registry) == 0


def test_remove_ignores_stale_handle_with_same_id(registry):
    live = Subscriber("a")
    registry.add(live)
    assert registry.remove(Subscriber("a")) is False
    assert live in registry


def test_list_is_an_isolated_snapshot(registry):
    a, b = Subscriber("a"), Subscriber("b")
    registry.add(a)
    registry.add(b)

    snapshot = registry.list()
    registry.remove(a)
    registry.add(Subscriber("c"))

    assert [s.id for s in snapshot] == ["a", "b"]
    assert {s.id for s in registry.list()} == {"b", "c"}


@pytest.mark.asyncio
async def test_subscriber_queue_is_fifo():
    sub = Subscriber()
    for i in range(3):
        sub.deliver({"n": i})
    assert sub.pending == 3
    assert [await sub.next_message() for _ in range(3)] == [{"n": 0}, {"n": 1}, {"n": 2}]


@pytest.mark.asyncio
async def test_next_message_times_out_with_none():
    sub = Subscriber()
    assert await sub.next_message(timeout=0.01) is None


def test_deliver_after_disconnect_raises():
    sub = Subscriber("gone")
    assert sub.disconnect() is True
    assert sub.disconnect() is False
    with pytest.raises(TransportError) as excinfo:
        sub.deliver({"n": 1})
    assert excinfo.value.subscriber_id == "gone"


def test_overflow_with_disconnect_policy_raises():
    sub = Subscriber(maxsize=2, overflow_policy="disconnect")
    sub.deliver({"n": 1})
    sub.deliver({"n": 2})
    with pytest.raises(TransportError, match="queue full"):
        sub.deliver({"n": 3})


@pytest.mark.asyncio
async def test_overflow_with_drop_oldest_policy_keeps_newest():
    sub = Subscriber(maxsize=2, overflow_policy="drop_oldest")
    for i in range(1, 4):
        sub.deliver({"n": i})
    assert sub.connected
    assert [await sub.next_message(), await sub.next_message()] == [{"n": 2}, {"n": 3}]


def test_unknown_overflow_policy_rejected():
    with pytest.raises(ValueError):
        Subscriber(overflow_policy="block")


def test_subscribers_get_unique_ids():
    assert len({Subscriber().id for _ in range(100)}) == 100
