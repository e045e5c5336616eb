"""Repositorio de eventos - solo inserción y lectura."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.clock import as_utc
from ...core.domain import EventRecord
from .schema import event_log


def _to_event(row: Any) -> EventRecord:
    m = row._mapping
    return EventRecord(
        id=int(m["id"]),
        device_id=int(m["device_id"]),
        tenant_id=int(m["tenant_id"]),
        event_type=str(m["event_type"]),
        payload=m["payload"] or {},
        occurred_at=as_utc(m["occurred_at"]),
        recorded_at=as_utc(m["recorded_at"]),
    )


async def insert_event(
    db: AsyncSession,
    device_id: int,
    tenant_id: int,
    event_type: str,
    payload: dict[str, Any],
    occurred_at: datetime,
    recorded_at: datetime,
) -> int:
    result = await db.execute(
        insert(event_log).values(
            device_id=device_id,
            tenant_id=tenant_id,
            event_type=event_type,
            payload=payload,
            occurred_at=occurred_at,
            recorded_at=recorded_at,
        )
    )
    return int(result.inserted_primary_key[0])


async def get_event(db: AsyncSession, event_id: int) -> Optional[EventRecord]:
    row = (await db.execute(select(event_log).where(event_log.c.id == event_id))).first()
    return _to_event(row) if row else None


async def list_events(
    db: AsyncSession,
    tenant_id: int,
    device_id: Optional[int] = None,
    event_type: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[EventRecord], int]:
    """Lista eventos de un circle, más recientes primero.

    Returns:
        (eventos de la página, total)
    """
    conditions = [event_log.c.tenant_id == tenant_id]
    if device_id is not None:
        conditions.append(event_log.c.device_id == device_id)
    if event_type:
        conditions.append(event_log.c.event_type == event_type)
    if since is not None:
        conditions.append(event_log.c.occurred_at >= since)
    if until is not None:
        conditions.append(event_log.c.occurred_at <= until)
    where = and_(*conditions)

    total = (await db.execute(select(func.count()).select_from(event_log).where(where))).scalar_one()

    offset = max(page - 1, 0) * limit
    rows = await db.execute(
        select(event_log)
        .where(where)
        .order_by(event_log.c.occurred_at.desc(), event_log.c.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return [_to_event(r) for r in rows], int(total)
