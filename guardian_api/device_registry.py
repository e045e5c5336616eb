"""Registro de dispositivos: alta, consulta y vinculación a circles.

bind/unbind disparan la invalidación del cache de autorización para el
vínculo anterior, así un dispositivo desvinculado deja de ser aceptado en
su circle viejo sin esperar al TTL.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .auth.device_auth import DeviceAuthorizationCache
from .core.clock import utcnow
from .core.domain import Device
from .infrastructure.persistence import device_repository as repo
from .infrastructure.persistence.session import transaction

logger = logging.getLogger(__name__)


class DeviceRegistry:
    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        device_auth: DeviceAuthorizationCache,
    ):
        self._sessions = sessions
        self._device_auth = device_auth

    async def create_device(
        self,
        serial: str,
        name: Optional[str] = None,
        tenant_id: Optional[int] = None,
        firmware_version: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> Device:
        async with transaction(self._sessions) as db:
            device_id = await repo.create_device(
                db,
                serial,
                utcnow(),
                name=name,
                tenant_id=tenant_id,
                firmware_version=firmware_version,
                config=config,
            )
            device = await repo.get_device_by_id(db, device_id)
        logger.info("[DEVICES] Device %s created circle=%s", serial, tenant_id)
        return device

    async def get_device(self, serial: str) -> Optional[Device]:
        async with self._sessions() as db:
            return await repo.get_device_by_serial(db, serial)

    async def list_devices(self, tenant_id: int) -> list[Device]:
        async with self._sessions() as db:
            return await repo.list_devices_by_tenant(db, tenant_id)

    async def bind_device(self, serial: str, tenant_id: int) -> Optional[Device]:
        """Vincula el dispositivo a un circle. None si el serial no existe."""
        return await self._rebind(serial, tenant_id)

    async def unbind_device(self, serial: str) -> Optional[Device]:
        """Desvincula el dispositivo (tenant_id = NULL, la fila se conserva)."""
        return await self._rebind(serial, None)

    async def _rebind(self, serial: str, tenant_id: Optional[int]) -> Optional[Device]:
        async with transaction(self._sessions) as db:
            previous = await repo.set_binding(db, serial, tenant_id, utcnow())
            if previous is None:
                return None
            current = await repo.get_device_by_id(db, previous.id)

        if previous.tenant_id is not None and previous.tenant_id != tenant_id:
            await self._device_auth.invalidate(serial, previous.tenant_id)

        logger.info(
            "[DEVICES] Device %s binding %s -> %s",
            serial,
            previous.tenant_id,
            tenant_id,
        )
        return current
