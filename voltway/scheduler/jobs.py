"""
Background jobs.

  every STATION_STALE_CHECK_SECONDS → check_station_staleness()
      marks the station offline once the device has been silent for
      STATION_STALE_AFTER_SECONDS and pushes the change to the dashboards.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from voltway.broadcast.station_broadcaster import StationBroadcaster
from voltway.config import STATION_STALE_AFTER_SECONDS, STATION_STALE_CHECK_SECONDS
from voltway.storage import StationStore

log = logging.getLogger(__name__)

STALE_JOB_ID = "station_stale_check"


async def check_station_staleness(
    store: StationStore,
    broadcaster: StationBroadcaster,
    stale_after: float = STATION_STALE_AFTER_SECONDS,
) -> bool:
    """Returns True if the station was flipped to offline (and published)."""
    state = await store.mark_offline_if_stale(timedelta(seconds=stale_after))
    if state is None:
        return False
    await broadcaster.publish(state)
    return True


async def setup_scheduler(
    store: StationStore,
    broadcaster: StationBroadcaster,
    stale_after: float = STATION_STALE_AFTER_SECONDS,
    interval: float = STATION_STALE_CHECK_SECONDS,
) -> Optional[AsyncIOScheduler]:
    """Initialise and start the scheduler; None when the watchdog is disabled."""
    if stale_after <= 0:
        log.info("Stale-station watchdog disabled")
        return None

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        check_station_staleness,
        "interval",
        seconds=interval,
        args=[store, broadcaster, stale_after],
        id=STALE_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.start()
    log.info("Stale-station watchdog: offline after %.0fs silence, checked every %.0fs",
             stale_after, interval)
    return scheduler
