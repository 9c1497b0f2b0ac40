"""Pydantic models for the station state and the push channel messages."""
from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from voltway.exceptions import ValidationError

StationStatus = Literal["available", "charging", "maintenance", "offline"]

REQUIRED_FIELDS = ("id", "status")

# Push channel event names (wire-compatible with the dashboard)
STATION_UPDATE = "stationUpdate"
GET_CURRENT_DATA = "getCurrentData"
PING = "ping"


class _WireModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Station state ─────────────────────────────────────────────────────────────

class DeviceState(_WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    status: StationStatus = "offline"
    battery_level: float = Field(0.0, ge=0.0, le=100.0)
    charging_power: float = Field(0.0, ge=0.0)      # kW
    charging_current: float = Field(0.0, ge=0.0)    # A
    voltage: float = Field(0.0, ge=0.0)             # V
    temperature: float = 0.0                        # °C
    charging_time: int = Field(0, ge=0)             # minutes
    last_update: datetime

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class StationUpdate(_WireModel):
    """Partial DeviceState sent by the producer. ``lastUpdate`` is never accepted."""

    id: str = Field(min_length=1)
    status: StationStatus
    name: Optional[str] = None
    battery_level: Optional[float] = Field(None, ge=0.0, le=100.0)
    charging_power: Optional[float] = Field(None, ge=0.0)
    charging_current: Optional[float] = Field(None, ge=0.0)
    voltage: Optional[float] = Field(None, ge=0.0)
    temperature: Optional[float] = None
    charging_time: Optional[int] = Field(None, ge=0)

    def provided_fields(self) -> dict[str, Any]:
        """Fields the producer actually sent; nulls count as absent."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


def _describe(exc: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def parse_update(payload: StationUpdate | Mapping[str, Any]) -> StationUpdate:
    """Validate a raw producer payload.

    Raises ValidationError when ``id`` or ``status`` is missing, or when any
    provided value has the wrong type or range.
    """
    if isinstance(payload, StationUpdate):
        return payload
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    missing = [f for f in REQUIRED_FIELDS if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    try:
        return StationUpdate.model_validate(dict(payload))
    except PydanticValidationError as exc:
        raise ValidationError(_describe(exc)) from exc


# ── Push channel messages ─────────────────────────────────────────────────────

class StationUpdateMessage(BaseModel):
    type: Literal["stationUpdate"] = STATION_UPDATE
    data: DeviceState


class PingMessage(BaseModel):
    type: Literal["ping"] = PING


class ClientMessage(BaseModel):
    type: str


def station_update_message(state: DeviceState) -> dict[str, Any]:
    return StationUpdateMessage(data=state).model_dump(mode="json", by_alias=True)


def ping_message() -> dict[str, Any]:
    return PingMessage().model_dump()
