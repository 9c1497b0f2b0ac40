"""
Tests for producer ingest (merge then publish)
"""

import pytest

from voltway.broadcast.registry import Subscriber
from voltway.exceptions import InternalError, ValidationError
from voltway.ingest import ingest_update


@pytest.fixture
def subscriber(registry):
    sub = Subscriber()
    registry.add(sub)
    return sub


@pytest.mark.asyncio
async def test_ingest_merges_and_publishes(store, broadcaster, subscriber):
    state = await ingest_update(
        {"id": "ESP32_001", "status": "charging", "chargingPower": 11.0},
        store, broadcaster,
    )
    assert store.get() is state
    msg = await subscriber.next_message(timeout=1)
    assert msg["data"] == state.to_wire()


@pytest.mark.asyncio
async def test_invalid_update_is_neither_stored_nor_published(store, broadcaster, subscriber):
    before = store.get()
    with pytest.raises(ValidationError):
        await ingest_update({"status": "charging"}, store, broadcaster)
    assert store.get() is before
    assert subscriber.pending == 0


@pytest.mark.asyncio
async def test_unexpected_failure_becomes_internal_error(store, broadcaster, subscriber, monkeypatch):
    async def broken_merge(update):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(store, "merge", broken_merge)
    with pytest.raises(InternalError) as excinfo:
        await ingest_update({"id": "ESP32_001", "status": "charging"}, store, broadcaster)
    assert "disk on fire" not in str(excinfo.value)
    assert subscriber.pending == 0
