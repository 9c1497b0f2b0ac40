"""
Shared fixtures: a fresh store/registry/broadcaster per test and an app wired to them.
"""

import pytest
from fastapi.testclient import TestClient

from voltway.broadcast.registry import SubscriberRegistry
from voltway.broadcast.station_broadcaster import StationBroadcaster
from voltway.main import create_app
from voltway.storage import StationStore


@pytest.fixture
def store():
    return StationStore(station_id="ESP32_001", name="VoltWay Station")


@pytest.fixture
def registry():
    return SubscriberRegistry()


@pytest.fixture
def broadcaster(registry):
    return StationBroadcaster(registry)


@pytest.fixture
def app(store, broadcaster):
    return create_app(store=store, broadcaster=broadcaster, stale_after=0, keepalive=60.0)


@pytest.fixture
def client(app):
    # Context manager keeps HTTP requests and WebSocket sessions on one event loop
    with TestClient(app) as c:
        yield c
