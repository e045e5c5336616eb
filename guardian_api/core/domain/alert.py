"""Modelo de dominio para alertas."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional


class AlertStatus(IntEnum):
    """Estados de la alerta. ACKNOWLEDGED e IGNORED son terminales."""

    PENDING = 0
    NOTIFIED = 1
    ACKNOWLEDGED = 2
    IGNORED = 3

    @property
    def is_terminal(self) -> bool:
        return self >= AlertStatus.ACKNOWLEDGED


TERMINAL_STATUSES = frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.IGNORED})


class Severity(IntEnum):
    """Severidad ordenada de una alerta."""

    LOW = 1
    HIGH = 2
    CRITICAL = 3


class StatusBucket(str, Enum):
    """Filtro de listado por grupo de estados."""

    PENDING = "pending"      # 0, 1
    RESOLVED = "resolved"    # 2, 3
    ALL = "all"

    @property
    def statuses(self) -> Optional[tuple[int, ...]]:
        if self is StatusBucket.PENDING:
            return (AlertStatus.PENDING.value, AlertStatus.NOTIFIED.value)
        if self is StatusBucket.RESOLVED:
            return (AlertStatus.ACKNOWLEDGED.value, AlertStatus.IGNORED.value)
        return None


class TransitionOutcome(str, Enum):
    """Resultado de intentar resolver una alerta."""

    RESOLVED = "resolved"
    ALREADY_RESOLVED = "already_resolved"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Alert:
    id: int
    event_id: int
    tenant_id: int
    severity: Severity
    message: str
    status: AlertStatus
    created_at: datetime
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None

    def to_push(self, event_type: str | None = None, device_name: str | None = None) -> dict[str, Any]:
        """Formato del push `new_alert`."""
        return {
            "id": self.id,
            "eventId": self.event_id,
            "circleId": self.tenant_id,
            "alertLevel": int(self.severity),
            "severity": self.severity.name.lower(),
            "alertContent": self.message,
            "status": self.status.name.lower(),
            "eventType": event_type,
            "deviceName": device_name,
            "timestamp": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class AlertPage:
    items: list[Alert]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


@dataclass(frozen=True)
class AlertStats:
    total: int
    pending: int
    acknowledged: int
    ignored: int
    affected_tenants: int
