"""Liveness Tracker - estado online/offline/fault de dispositivos.

Dos mecanismos independientes:
- derive_status(): cálculo en lectura, ventana de frescura (5 min)
- sweep(): barrido periódico que baja a offline/fault los dispositivos
  guardados como online sin heartbeat hace más de la ventana de
  desconexión (10 min). Escritura condicional: un heartbeat que llega
  en medio gana.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...core.clock import as_utc, utcnow
from ...core.domain import Device, DeviceStatus
from ...infrastructure.persistence import device_repository as repo
from ...infrastructure.persistence.session import transaction
from ...metrics import LIVENESS_FLIPS
from ...realtime import RealtimeHub

logger = logging.getLogger(__name__)

FRESHNESS_SECONDS = 300
STALE_SECONDS = 600


def derive_status(device: Device, now: Optional[datetime] = None, freshness_seconds: int = FRESHNESS_SECONDS) -> DeviceStatus:
    """Estado de un dispositivo calculado en el momento de leerlo.

    Precedencia: unbound > fault > online (heartbeat fresco) > offline.
    """
    if not device.is_bound:
        return DeviceStatus.UNBOUND
    if device.fault:
        return DeviceStatus.FAULT

    last = as_utc(device.last_heartbeat_at)
    if last is None:
        return DeviceStatus.OFFLINE

    now = as_utc(now) if now is not None else utcnow()
    if now - last < timedelta(seconds=freshness_seconds):
        return DeviceStatus.ONLINE
    return DeviceStatus.OFFLINE


class LivenessTracker:
    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        hub: RealtimeHub,
        freshness_seconds: int = FRESHNESS_SECONDS,
        stale_seconds: int = STALE_SECONDS,
    ):
        self._sessions = sessions
        self._hub = hub
        self.freshness_seconds = int(freshness_seconds)
        self.stale_seconds = int(stale_seconds)

    def derive_status(self, device: Device, now: Optional[datetime] = None) -> DeviceStatus:
        return derive_status(device, now, self.freshness_seconds)

    def device_view(self, device: Device, now: Optional[datetime] = None) -> dict[str, Any]:
        """Formato del push `device_state_update`."""
        last = as_utc(device.last_heartbeat_at)
        return {
            "deviceId": device.id,
            "deviceSn": device.serial,
            "deviceName": device.display_name,
            "circleId": device.tenant_id,
            "status": self.derive_status(device, now).value,
            "fault": device.fault,
            "lastHeartbeat": last.isoformat() if last else None,
            "firmwareVersion": device.firmware_version,
            "state": device.last_state,
        }

    async def touch_heartbeat(
        self,
        device: Device,
        firmware_version: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Device]:
        """Registra un heartbeat. Idempotente: repetirlo no cambia el resultado."""
        now = now or utcnow()
        async with transaction(self._sessions) as db:
            await repo.touch_heartbeat(db, device.id, now, firmware_version)
            updated = await repo.get_device_by_id(db, device.id)

        if updated is None:
            logger.warning("[LIVENESS] Heartbeat for missing device id=%s serial=%s", device.id, device.serial)
            return None

        logger.debug("[LIVENESS] Heartbeat device=%s circle=%s", updated.serial, updated.tenant_id)
        await self._push(updated, now)
        return updated

    async def apply_state(self, device: Device, state: dict[str, Any], fault: Optional[bool] = None) -> Optional[Device]:
        """Guarda el estado reportado; un `fault` booleano activa o limpia la falla."""
        now = utcnow()
        if fault is None:
            value = state.get("fault")
            fault = value if isinstance(value, bool) else None

        async with transaction(self._sessions) as db:
            await repo.update_reported_state(db, device.id, state, now, fault=fault)
            updated = await repo.get_device_by_id(db, device.id)

        if updated is None:
            return None

        if fault is not None and fault != device.fault:
            logger.info("[LIVENESS] Device %s fault=%s", updated.serial, fault)
        await self._push(updated, now)
        return updated

    async def sweep(self, now: Optional[datetime] = None) -> list[Device]:
        """Baja a offline (o fault) los dispositivos online sin heartbeat reciente.

        Returns:
            Dispositivos efectivamente cambiados, con su nuevo estado
        """
        now = now or utcnow()
        cutoff = now - timedelta(seconds=self.stale_seconds)

        async with self._sessions() as db:
            candidates = await repo.find_stale_online(db, cutoff)

        flipped: list[Device] = []
        for device in candidates:
            new_status = DeviceStatus.FAULT if device.fault else DeviceStatus.OFFLINE
            async with transaction(self._sessions) as db:
                rowcount = await repo.mark_disconnected(db, device.id, cutoff, new_status, now)
            if rowcount != 1:
                # Llegó un heartbeat entre la lectura y la escritura
                continue
            flipped.append(dataclasses.replace(device, status=new_status))
            LIVENESS_FLIPS.labels(status=new_status.value).inc()

        if flipped:
            logger.info(
                "[LIVENESS] Sweep flipped %d device(s): %s",
                len(flipped),
                ", ".join(f"{d.serial}->{d.status.value}" for d in flipped),
            )
        for device in flipped:
            await self._push(device, now)
        return flipped

    async def _push(self, device: Device, now: datetime) -> None:
        if device.tenant_id is None:
            return
        await self._hub.broadcast_to_tenant(device.tenant_id, "device_state_update", self.device_view(device, now))
