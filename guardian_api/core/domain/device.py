"""Modelo de dominio para dispositivos."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class DeviceStatus(str, Enum):
    """Estados de un dispositivo."""

    UNBOUND = "unbound"    # Sin circle asignado
    ONLINE = "online"
    OFFLINE = "offline"
    FAULT = "fault"        # Falla reportada explícitamente por el dispositivo


@dataclass(frozen=True)
class Device:
    """Snapshot de un dispositivo tal como está en BD.

    tenant_id es None cuando el dispositivo no está vinculado a ningún circle.
    """

    id: int
    serial: str
    tenant_id: Optional[int]
    status: DeviceStatus
    name: Optional[str] = None
    fault: bool = False
    last_heartbeat_at: Optional[datetime] = None
    firmware_version: Optional[str] = None
    config: dict[str, Any] = field(default_factory=dict)
    last_state: Optional[dict[str, Any]] = None

    @property
    def display_name(self) -> str:
        return self.name or self.serial

    @property
    def is_bound(self) -> bool:
        return self.tenant_id is not None

    def to_cache(self) -> dict[str, Any]:
        """Formato mínimo para el cache de autorización."""
        return {
            "id": self.id,
            "serial": self.serial,
            "tenant_id": self.tenant_id,
            "status": self.status.value,
            "name": self.name,
        }

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> "Device":
        return cls(
            id=int(data["id"]),
            serial=str(data["serial"]),
            tenant_id=data.get("tenant_id"),
            status=DeviceStatus(data.get("status", DeviceStatus.OFFLINE.value)),
            name=data.get("name"),
        )
