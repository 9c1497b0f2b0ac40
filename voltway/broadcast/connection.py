"""
Per-connection lifecycle of the dashboard push channel.

CONNECTING → CONNECTED → DISCONNECTED (terminal). On connect the subscriber is
registered and immediately sent the current snapshot; afterwards a reader task
answers ``getCurrentData`` requests while a writer task drains the subscriber
queue to the socket.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect, status
from fastapi.websockets import WebSocketState
from pydantic import ValidationError as PydanticValidationError

from voltway.broadcast.registry import Subscriber
from voltway.broadcast.station_broadcaster import StationBroadcaster
from voltway.config import WS_KEEPALIVE_SECONDS
from voltway.exceptions import TransportError
from voltway.models import GET_CURRENT_DATA, ClientMessage, ping_message
from voltway.storage import StationStore

log = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class StationConnection:
    def __init__(
        self,
        websocket: WebSocket,
        store: StationStore,
        broadcaster: StationBroadcaster,
        keepalive: float = WS_KEEPALIVE_SECONDS,
        subscriber: Optional[Subscriber] = None,
    ) -> None:
        self.websocket = websocket
        self.store = store
        self.broadcaster = broadcaster
        self.registry = broadcaster.registry
        self.keepalive = keepalive
        self.subscriber = subscriber or Subscriber()
        self.state = ConnectionState.CONNECTING

    # ── State transitions ─────────────────────────────────────────────────────

    async def open(self) -> None:
        await self.websocket.accept()
        self.registry.add(self.subscriber)
        self.state = ConnectionState.CONNECTED
        log.info("Subscriber %s joined (%d connected)", self.subscriber.id, len(self.registry))
        # Catch-up push: late joiners get the latest state, not history
        self.push_current()

    def push_current(self) -> None:
        """Queue the current snapshot for this subscriber only.

        A full queue drops the subscriber the same way a failed broadcast does,
        so the writer ends and the socket closes with 1013.
        """
        try:
            self.broadcaster.send_to(self.subscriber, self.store.get())
        except TransportError as exc:
            log.warning("Dropping subscriber %s: %s", self.subscriber.id, exc)
            self.subscriber.disconnect()
            self.registry.remove(self.subscriber)

    def handle_message(self, message: Any) -> None:
        try:
            msg = ClientMessage.model_validate(message)
        except PydanticValidationError:
            log.debug("Ignoring malformed message from %s: %r", self.subscriber.id, message)
            return
        if msg.type == GET_CURRENT_DATA:
            self.push_current()
        else:
            log.debug("Ignoring %r message from %s", msg.type, self.subscriber.id)

    def close(self) -> bool:
        """Idempotent transition to DISCONNECTED. True only on the first call."""
        if self.state is ConnectionState.DISCONNECTED:
            return False
        was_connected = self.state is ConnectionState.CONNECTED
        self.state = ConnectionState.DISCONNECTED
        self.subscriber.disconnect()
        self.registry.remove(self.subscriber)
        if was_connected:
            log.info("Subscriber %s left (%d connected)", self.subscriber.id, len(self.registry))
        return True

    # ── I/O loops ─────────────────────────────────────────────────────────────

    async def _receive_loop(self) -> None:
        while True:
            try:
                message = await self.websocket.receive_json()
            except (ValueError, KeyError):  # non-JSON text or a binary frame
                log.debug("Ignoring non-JSON or binary frame from %s", self.subscriber.id)
                continue
            self.handle_message(message)

    async def _send_loop(self) -> None:
        while self.subscriber.connected:
            message = await self.subscriber.next_message(timeout=self.keepalive)
            if not self.subscriber.connected:
                break
            try:
                await self.websocket.send_json(message if message is not None else ping_message())
            except (WebSocketDisconnect, RuntimeError) as exc:
                raise TransportError(
                    str(exc) or type(exc).__name__, subscriber_id=self.subscriber.id,
                ) from exc

    async def _close_socket(self, code: int) -> None:
        if (
            self.websocket.application_state != WebSocketState.CONNECTED
            or self.websocket.client_state != WebSocketState.CONNECTED
        ):
            return
        try:
            await self.websocket.close(code=code)
        except (WebSocketDisconnect, RuntimeError) as exc:
            log.debug("Socket for %s already gone: %s", self.subscriber.id, exc)

    async def run(self) -> None:
        try:
            await self.open()
        except BaseException:
            self.close()
            raise

        reader = asyncio.create_task(self._receive_loop())
        writer = asyncio.create_task(self._send_loop())
        try:
            done, _ = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                task.result()
        except WebSocketDisconnect:
            pass
        except TransportError as exc:
            log.info("Push channel %s lost: %s", self.subscriber.id, exc)
        except Exception:
            log.exception("WebSocket error for subscriber %s", self.subscriber.id)
        finally:
            # Dropped by the broadcaster (queue overflow) rather than by the client
            dropped = self.state is ConnectionState.CONNECTED and not self.subscriber.connected
            # Deregister before the first await; the handler itself may be cancelled
            self.close()
            for task in (reader, writer):
                task.cancel()
            await asyncio.gather(reader, writer, return_exceptions=True)
            await self._close_socket(
                status.WS_1013_TRY_AGAIN_LATER if dropped else status.WS_1000_NORMAL_CLOSURE
            )
