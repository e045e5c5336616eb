"""Validadores de payloads MQTT por tipo de mensaje.

Formatos esperados:
    event:     {"event_type": "fall_detection", "event_data": {...}, "timestamp": 1767225600}
    heartbeat: {"firmware_version": "1.2.0"}
    state:     {"state": {...}}

`type`/`data` y `firmwareVersion` se aceptan como alias.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..core.clock import from_epoch
from ..core.domain import MessageKind


class EventPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event_type: str = Field(..., min_length=1, validation_alias=AliasChoices("event_type", "type"))
    event_data: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("event_data", "data")
    )
    timestamp: Optional[float] = None

    @field_validator("event_type")
    @classmethod
    def strip_event_type(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("event_type is required")
        return v

    @field_validator("event_data", mode="before")
    @classmethod
    def null_event_data(cls, v):
        return {} if v is None else v

    @field_validator("timestamp")
    @classmethod
    def representable_timestamp(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return v
        if not math.isfinite(v):
            raise ValueError("timestamp must be finite")
        try:
            from_epoch(v)
        except (ValueError, OverflowError, OSError):
            # p.ej. epoch en milisegundos
            raise ValueError("timestamp out of range (epoch seconds expected)")
        return v

    @property
    def occurred_at(self) -> Optional[datetime]:
        return from_epoch(self.timestamp)


class HeartbeatPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    firmware_version: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("firmware_version", "firmwareVersion")
    )


class StatePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    state: dict[str, Any]

    @property
    def fault(self) -> Optional[bool]:
        """Flag de falla si el estado lo trae como booleano."""
        value = self.state.get("fault")
        return value if isinstance(value, bool) else None


PAYLOAD_MODELS: dict[MessageKind, type[BaseModel]] = {
    MessageKind.EVENT: EventPayload,
    MessageKind.HEARTBEAT: HeartbeatPayload,
    MessageKind.STATE: StatePayload,
}
