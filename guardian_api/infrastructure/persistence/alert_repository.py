"""Repositorio de alertas - operaciones de persistencia.

Las transiciones a estados terminales son UPDATE condicionales
(WHERE status < 2); el rowcount decide quién ganó.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import and_, case, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.clock import as_utc
from ...core.domain import Alert, AlertStats, AlertStatus, Severity, StatusBucket
from .schema import alert_log


def _to_alert(row: Any) -> Alert:
    m = row._mapping
    return Alert(
        id=int(m["id"]),
        event_id=int(m["event_id"]),
        tenant_id=int(m["tenant_id"]),
        severity=Severity(int(m["severity"])),
        message=str(m["message"]),
        status=AlertStatus(int(m["status"])),
        created_at=as_utc(m["created_at"]),
        resolved_by=m["resolved_by"],
        resolved_at=as_utc(m["resolved_at"]),
    )


async def insert_alert(
    db: AsyncSession,
    event_id: int,
    tenant_id: int,
    severity: Severity,
    message: str,
    created_at: datetime,
) -> int:
    result = await db.execute(
        insert(alert_log).values(
            event_id=event_id,
            tenant_id=tenant_id,
            severity=int(severity),
            message=message,
            status=AlertStatus.PENDING.value,
            created_at=created_at,
        )
    )
    return int(result.inserted_primary_key[0])


async def get_alert(db: AsyncSession, alert_id: int) -> Optional[Alert]:
    row = (await db.execute(select(alert_log).where(alert_log.c.id == alert_id))).first()
    return _to_alert(row) if row else None


async def resolve_alert(
    db: AsyncSession,
    alert_id: int,
    new_status: AlertStatus,
    actor_id: int,
    now: datetime,
) -> int:
    """Solo se pueden resolver alertas no resueltas (status < 2)."""
    result = await db.execute(
        update(alert_log)
        .where(and_(alert_log.c.id == alert_id, alert_log.c.status < AlertStatus.ACKNOWLEDGED.value))
        .values(status=new_status.value, resolved_by=actor_id, resolved_at=now)
    )
    return result.rowcount


async def mark_notified(db: AsyncSession, alert_id: int) -> int:
    result = await db.execute(
        update(alert_log)
        .where(and_(alert_log.c.id == alert_id, alert_log.c.status == AlertStatus.PENDING.value))
        .values(status=AlertStatus.NOTIFIED.value)
    )
    return result.rowcount


async def delete_alert(db: AsyncSession, alert_id: int) -> int:
    result = await db.execute(delete(alert_log).where(alert_log.c.id == alert_id))
    return result.rowcount


async def list_alerts(
    db: AsyncSession,
    tenant_ids: Iterable[int],
    bucket: StatusBucket = StatusBucket.ALL,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Alert], int]:
    """Lista alertas de uno o varios circles, más recientes primero."""
    tenant_ids = list(tenant_ids)
    if not tenant_ids:
        return [], 0

    conditions = [alert_log.c.tenant_id.in_(tenant_ids)]
    statuses = bucket.statuses
    if statuses is not None:
        conditions.append(alert_log.c.status.in_(statuses))
    where = and_(*conditions)

    total = (await db.execute(select(func.count()).select_from(alert_log).where(where))).scalar_one()

    offset = max(page - 1, 0) * limit
    rows = await db.execute(
        select(alert_log)
        .where(where)
        .order_by(alert_log.c.created_at.desc(), alert_log.c.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return [_to_alert(r) for r in rows], int(total)


async def alert_stats(db: AsyncSession, tenant_ids: Iterable[int]) -> AlertStats:
    tenant_ids = list(tenant_ids)
    if not tenant_ids:
        return AlertStats(total=0, pending=0, acknowledged=0, ignored=0, affected_tenants=0)

    status = alert_log.c.status
    row = (
        await db.execute(
            select(
                func.count().label("total"),
                func.sum(case((status < AlertStatus.ACKNOWLEDGED.value, 1), else_=0)).label("pending"),
                func.sum(case((status == AlertStatus.ACKNOWLEDGED.value, 1), else_=0)).label("acknowledged"),
                func.sum(case((status == AlertStatus.IGNORED.value, 1), else_=0)).label("ignored"),
                func.count(func.distinct(alert_log.c.tenant_id)).label("affected"),
            ).where(alert_log.c.tenant_id.in_(tenant_ids))
        )
    ).one()

    return AlertStats(
        total=int(row.total or 0),
        pending=int(row.pending or 0),
        acknowledged=int(row.acknowledged or 0),
        ignored=int(row.ignored or 0),
        affected_tenants=int(row.affected or 0),
    )
