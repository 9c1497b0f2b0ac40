"""
FastAPI application entry point.

Routes:
  GET  /                   API banner
  GET  /health
  GET  /api/station        current station state
  POST /api/station/data   producer ingest (partial state; id + status required)

  WS   /ws/station         push channel
       server → client  {"type": "stationUpdate", "data": {...}}   on join + every ingest
                        {"type": "ping"}                           when idle
       client → server  {"type": "getCurrentData"}                 re-push current state

Every HTTP error body is {"success": false, "error": "<reason>"}.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import HTTPConnection
from fastapi.responses import JSONResponse

from voltway.broadcast.connection import StationConnection
from voltway.broadcast.registry import SubscriberRegistry
from voltway.broadcast.station_broadcaster import StationBroadcaster
from voltway.config import (
    API_VERSION, CORS_ORIGINS, HOST, PORT,
    STATION_STALE_AFTER_SECONDS, WS_KEEPALIVE_SECONDS,
)
from voltway.exceptions import InternalError, ValidationError
from voltway.ingest import ingest_update
from voltway.scheduler.jobs import setup_scheduler
from voltway.storage import StationStore

log = logging.getLogger("uvicorn.error")


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── Dependencies ──────────────────────────────────────────────────────────────

def get_store(conn: HTTPConnection) -> StationStore:
    return conn.app.state.store


def get_broadcaster(conn: HTTPConnection) -> StationBroadcaster:
    return conn.app.state.broadcaster


# ── Lifespan ──────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.scheduler = await setup_scheduler(
        app.state.store, app.state.broadcaster, stale_after=app.state.stale_after,
    )
    yield
    if app.state.scheduler is not None:
        app.state.scheduler.shutdown(wait=False)


def create_app(
    store: Optional[StationStore] = None,
    broadcaster: Optional[StationBroadcaster] = None,
    stale_after: float = STATION_STALE_AFTER_SECONDS,
    keepalive: float = WS_KEEPALIVE_SECONDS,
) -> FastAPI:
    app = FastAPI(title="VoltWay IoT API", version=API_VERSION, lifespan=lifespan)

    app.state.store = store or StationStore()
    app.state.broadcaster = broadcaster or StationBroadcaster(SubscriberRegistry())
    app.state.stale_after = stale_after
    app.state.keepalive = keepalive
    app.state.scheduler = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errors ────────────────────────────────────────────────────────────────

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(exc)},
        )

    @app.exception_handler(InternalError)
    async def internal_error_handler(request: Request, exc: InternalError):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Internal server error"},
        )

    # ── Health ────────────────────────────────────────────────────────────────

    @app.get("/")
    async def root():
        return {"message": "VoltWay IoT API is running", "version": API_VERSION}

    @app.get("/health")
    async def health():
        return {"status": "OK", "timestamp": _iso_now()}

    # ── Station ───────────────────────────────────────────────────────────────

    @app.get("/api/station")
    async def get_station(store: StationStore = Depends(get_store)):
        return {"success": True, "data": store.get().to_wire()}

    @app.post("/api/station/data")
    async def post_station_data(
        request: Request,
        store: StationStore = Depends(get_store),
        broadcaster: StationBroadcaster = Depends(get_broadcaster),
    ):
        try:
            payload = await request.json()
        except ValueError:
            raise ValidationError("Request body must be valid JSON") from None
        state = await ingest_update(payload, store, broadcaster)
        return {"success": True, "data": state.to_wire()}

    # ── WebSocket push channel ────────────────────────────────────────────────

    @app.websocket("/ws/station")
    async def ws_station(
        websocket: WebSocket,
        store: StationStore = Depends(get_store),
        broadcaster: StationBroadcaster = Depends(get_broadcaster),
    ):
        connection = StationConnection(
            websocket, store, broadcaster, keepalive=websocket.app.state.keepalive,
        )
        await connection.run()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    log.info("Serving VoltWay IoT API on %s:%d (health check: /health)", HOST, PORT)
    uvicorn.run("voltway.main:app", host=HOST, port=PORT)
