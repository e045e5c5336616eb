"""Modelo de dominio para eventos de telemetría."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class EventRecord:
    """Registro inmutable de un evento reportado por un dispositivo.

    tenant_id es el circle del dispositivo en el momento de registrar,
    no se recalcula si el dispositivo se revincula después.
    """

    id: int
    device_id: int
    tenant_id: int
    event_type: str
    payload: dict[str, Any]
    occurred_at: datetime
    recorded_at: datetime

    def to_push(self, device_name: str | None = None) -> dict[str, Any]:
        """Formato del push `new_event`."""
        return {
            "id": self.id,
            "circleId": self.tenant_id,
            "deviceId": self.device_id,
            "deviceName": device_name,
            "eventType": self.event_type,
            "eventData": self.payload,
            "eventTime": self.occurred_at.isoformat(),
            "timestamp": self.recorded_at.isoformat(),
        }
