"""Producer ingest: validate + merge into the store, then publish to subscribers."""
from __future__ import annotations

import logging
from typing import Any

from voltway.broadcast.station_broadcaster import StationBroadcaster
from voltway.exceptions import InternalError, ValidationError
from voltway.models import DeviceState
from voltway.storage import StationStore

log = logging.getLogger(__name__)


async def ingest_update(
    payload: Any,
    store: StationStore,
    broadcaster: StationBroadcaster,
) -> DeviceState:
    """Apply one producer update and fan the resulting state out.

    ValidationError propagates untouched (no mutation, no broadcast); anything
    else unexpected becomes InternalError.
    """
    try:
        state = await store.merge(payload)
    except ValidationError as exc:
        log.info("Rejected station update: %s", exc)
        raise
    except Exception as exc:
        log.exception("Failed to merge station update")
        raise InternalError("Failed to apply station update") from exc

    delivered = await broadcaster.publish(state)
    log.info(
        "Station %s → %s (battery %.0f%%, %.1f kW) pushed to %d subscriber(s)",
        state.id, state.status, state.battery_level, state.charging_power, delivered,
    )
    return state
