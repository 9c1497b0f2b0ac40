"""In-memory station state with async locking to prevent interleaved merges."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from voltway.config import STATION_ID, STATION_NAME
from voltway.models import DeviceState, StationUpdate, parse_update

log = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class StationStore:
    """Owns the single current DeviceState.

    Snapshots are frozen models, so ``get`` hands out the stored object itself.
    ``merge`` replaces the reference under the lock; readers always see a
    complete pre- or post-merge snapshot.
    """

    def __init__(self, station_id: str = STATION_ID, name: str = STATION_NAME) -> None:
        self._lock = asyncio.Lock()
        self._state = DeviceState(
            id=station_id,
            name=name,
            last_update=datetime.now(timezone.utc),
        )

    def get(self) -> DeviceState:
        return self._state

    def _stamp(self, now: Optional[datetime] = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        previous = self._state.last_update
        if now <= previous:
            now = previous + _TICK
        return now

    async def merge(self, update: StationUpdate | Mapping[str, Any]) -> DeviceState:
        """Overlay the provided fields on the current state and stamp ``lastUpdate``.

        Raises ValidationError (store untouched) for a missing ``id``/``status``
        or an invalid value.
        """
        parsed = parse_update(update)
        fields = parsed.provided_fields()
        async with self._lock:
            state = self._state.model_copy(
                update={**fields, "last_update": self._stamp()}
            )
            self._state = state
        return state

    async def mark_offline_if_stale(
        self, max_age: timedelta, now: Optional[datetime] = None,
    ) -> Optional[DeviceState]:
        """Flip status to offline when the producer has been silent for ``max_age``.

        Returns the new snapshot, or None if nothing changed.
        """
        now = now or datetime.now(timezone.utc)
        async with self._lock:
            current = self._state
            if current.status == "offline" or now - current.last_update < max_age:
                return None
            state = current.model_copy(
                update={"status": "offline", "last_update": self._stamp(now)}
            )
            self._state = state
        log.warning(
            "Station %s silent since %s — marked offline",
            state.id, current.last_update.isoformat(timespec="seconds"),
        )
        return state
