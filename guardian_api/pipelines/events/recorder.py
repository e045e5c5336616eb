"""Event Recorder - registro inmutable de eventos de dispositivos."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...core.clock import utcnow
from ...core.domain import Device, EventRecord
from ...infrastructure.persistence import event_repository as repo
from ...infrastructure.persistence.session import transaction
from ...realtime import RealtimeHub

logger = logging.getLogger(__name__)


class EventRecorder:
    def __init__(self, sessions: async_sessionmaker[AsyncSession], hub: RealtimeHub):
        self._sessions = sessions
        self._hub = hub

    async def record_event(
        self,
        device: Device,
        event_type: str,
        payload: Optional[dict[str, Any]] = None,
        occurred_at: Optional[datetime] = None,
    ) -> EventRecord:
        """Registra un evento de un dispositivo ya autorizado.

        El tenant_id se toma del dispositivo en este momento y no cambia
        aunque el dispositivo se revincule después. Siempre publica
        `new_event` al circle del dispositivo.
        """
        if device.tenant_id is None:
            raise ValueError(f"device {device.serial} is not bound to a circle")

        now = utcnow()
        occurred_at = occurred_at or now
        payload = payload or {}

        async with transaction(self._sessions) as db:
            event_id = await repo.insert_event(
                db,
                device_id=device.id,
                tenant_id=device.tenant_id,
                event_type=event_type,
                payload=payload,
                occurred_at=occurred_at,
                recorded_at=now,
            )

        record = EventRecord(
            id=event_id,
            device_id=device.id,
            tenant_id=device.tenant_id,
            event_type=event_type,
            payload=payload,
            occurred_at=occurred_at,
            recorded_at=now,
        )
        logger.info(
            "[EVENTS] Event %s recorded type=%s device=%s circle=%s",
            event_id,
            event_type,
            device.serial,
            device.tenant_id,
        )

        await self._hub.broadcast_to_tenant(
            device.tenant_id,
            "new_event",
            record.to_push(device_name=device.display_name),
        )
        return record

    async def get_event(self, event_id: int) -> Optional[EventRecord]:
        async with self._sessions() as db:
            return await repo.get_event(db, event_id)

    async def list_events(
        self,
        tenant_id: int,
        device_id: Optional[int] = None,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[EventRecord], int]:
        """Historial de un circle para clientes que reconectan (sin replay)."""
        page = max(int(page), 1)
        limit = max(int(limit), 1)
        async with self._sessions() as db:
            return await repo.list_events(
                db,
                tenant_id,
                device_id=device_id,
                event_type=event_type,
                since=since,
                until=until,
                page=page,
                limit=limit,
            )
