"""Repositorio de dispositivos - operaciones de persistencia."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, case, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.clock import as_utc
from ...core.domain import Device, DeviceStatus
from .schema import devices

logger = logging.getLogger(__name__)


def _to_device(row: Any) -> Device:
    m = row._mapping
    try:
        status = DeviceStatus(m["status"])
    except ValueError:
        status = DeviceStatus.OFFLINE
    return Device(
        id=int(m["id"]),
        serial=str(m["serial"]),
        tenant_id=m["tenant_id"],
        status=status,
        name=m["name"],
        fault=bool(m["fault"]),
        last_heartbeat_at=as_utc(m["last_heartbeat_at"]),
        firmware_version=m["firmware_version"],
        config=m["config"] or {},
        last_state=m["last_state"],
    )


async def create_device(
    db: AsyncSession,
    serial: str,
    now: datetime,
    name: Optional[str] = None,
    tenant_id: Optional[int] = None,
    firmware_version: Optional[str] = None,
    config: Optional[dict[str, Any]] = None,
) -> int:
    """Alta de un dispositivo (provisioning)."""
    result = await db.execute(
        insert(devices).values(
            serial=serial,
            name=name,
            tenant_id=tenant_id,
            status=(DeviceStatus.OFFLINE if tenant_id is not None else DeviceStatus.UNBOUND).value,
            fault=False,
            firmware_version=firmware_version,
            config=config or {},
            created_at=now,
            updated_at=now,
        )
    )
    return int(result.inserted_primary_key[0])


async def get_device_by_serial(db: AsyncSession, serial: str) -> Optional[Device]:
    row = (await db.execute(select(devices).where(devices.c.serial == serial))).first()
    return _to_device(row) if row else None


async def get_device_by_id(db: AsyncSession, device_id: int) -> Optional[Device]:
    row = (await db.execute(select(devices).where(devices.c.id == device_id))).first()
    return _to_device(row) if row else None


async def list_devices_by_tenant(db: AsyncSession, tenant_id: int) -> list[Device]:
    rows = await db.execute(
        select(devices).where(devices.c.tenant_id == tenant_id).order_by(devices.c.id)
    )
    return [_to_device(r) for r in rows]


async def touch_heartbeat(
    db: AsyncSession,
    device_id: int,
    now: datetime,
    firmware_version: Optional[str] = None,
) -> int:
    """Registra un heartbeat.

    - last_heartbeat_at nunca retrocede (heartbeats duplicados/reordenados)
    - firmware_version solo se actualiza si viene informado
    """
    values: dict[str, Any] = {
        "last_heartbeat_at": case(
            (
                or_(devices.c.last_heartbeat_at.is_(None), devices.c.last_heartbeat_at < now),
                now,
            ),
            else_=devices.c.last_heartbeat_at,
        ),
        "status": DeviceStatus.ONLINE.value,
        "updated_at": now,
    }
    if firmware_version:
        values["firmware_version"] = firmware_version

    result = await db.execute(
        update(devices).where(devices.c.id == device_id).values(**values)
    )
    return result.rowcount


async def update_reported_state(
    db: AsyncSession,
    device_id: int,
    state: dict[str, Any],
    now: datetime,
    fault: Optional[bool] = None,
) -> int:
    """Guarda el último estado reportado y, si viene, el flag de falla."""
    values: dict[str, Any] = {"last_state": state, "updated_at": now}
    if fault is not None:
        values["fault"] = fault
    result = await db.execute(
        update(devices).where(devices.c.id == device_id).values(**values)
    )
    return result.rowcount


async def find_stale_online(db: AsyncSession, cutoff: datetime) -> list[Device]:
    """Dispositivos marcados online cuyo último heartbeat es anterior a cutoff."""
    rows = await db.execute(
        select(devices).where(
            and_(
                devices.c.status == DeviceStatus.ONLINE.value,
                or_(devices.c.last_heartbeat_at.is_(None), devices.c.last_heartbeat_at < cutoff),
            )
        )
    )
    return [_to_device(r) for r in rows]


async def mark_disconnected(
    db: AsyncSession,
    device_id: int,
    cutoff: datetime,
    new_status: DeviceStatus,
    now: datetime,
) -> int:
    """Pasa un dispositivo de online a offline/fault.

    Condicional: si llegó un heartbeat entre la lectura y la escritura,
    no se toca (rowcount 0).
    """
    result = await db.execute(
        update(devices)
        .where(
            and_(
                devices.c.id == device_id,
                devices.c.status == DeviceStatus.ONLINE.value,
                or_(devices.c.last_heartbeat_at.is_(None), devices.c.last_heartbeat_at < cutoff),
            )
        )
        .values(status=new_status.value, updated_at=now)
    )
    return result.rowcount


async def set_binding(
    db: AsyncSession,
    serial: str,
    tenant_id: Optional[int],
    now: datetime,
) -> Optional[Device]:
    """Vincula (tenant_id) o desvincula (None) un dispositivo.

    Returns:
        El snapshot previo al cambio, o None si el serial no existe.
    """
    previous = await get_device_by_serial(db, serial)
    if previous is None:
        return None

    values: dict[str, Any] = {"tenant_id": tenant_id, "updated_at": now}
    if tenant_id is None:
        values["status"] = DeviceStatus.UNBOUND.value
    elif previous.status == DeviceStatus.UNBOUND:
        values["status"] = DeviceStatus.OFFLINE.value

    await db.execute(update(devices).where(devices.c.id == previous.id).values(**values))
    return previous
