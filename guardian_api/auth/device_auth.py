"""Autorización de dispositivos contra el circle que reclaman.

FLUJO:
1. El topic trae (tenant_id, serial)
2. Se lee la generación de vínculo del serial
3. Se busca el dispositivo por serial y se exige device.tenant_id == tenant_id
4. Solo los aciertos se memorizan en el store clave-valor, con TTL y la
   generación leída en el paso 2 como parte de la clave

SEGURIDAD:
- Un dispositivo desconocido o de otro circle nunca se cachea
- bind/unbind del registro cambian la generación: una escritura en vuelo
  con la generación vieja queda en una clave que nadie vuelve a leer
- El TTL acota la ventana si el vínculo cambia por fuera del registro
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

import orjson
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.domain import Device
from ..core.redis import KeyValueStore
from ..errors import StoreUnavailableError
from ..infrastructure.persistence import device_repository

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "guardian:device_auth"
GENERATION_KEY_PREFIX = "guardian:device_auth_gen"
INITIAL_GENERATION = "0"


def cache_key(serial: str, tenant_id: int, generation: str = INITIAL_GENERATION) -> str:
    return f"{CACHE_KEY_PREFIX}:{serial}:{tenant_id}:{generation}"


def generation_key(serial: str) -> str:
    return f"{GENERATION_KEY_PREFIX}:{serial}"


class DeviceAuthorizationCache:
    def __init__(
        self,
        store: KeyValueStore,
        sessions: async_sessionmaker[AsyncSession],
        ttl_seconds: int = 300,
    ):
        self._store = store
        self._sessions = sessions
        self._ttl = int(ttl_seconds)

    async def generation(self, serial: str) -> str:
        value = await self._store.get(generation_key(serial))
        return value or INITIAL_GENERATION

    async def authorize(self, serial: str, tenant_id: int) -> Optional[Device]:
        """Retorna el dispositivo si pertenece al circle, o None."""
        # Sin generación no se lee ni se escribe cache: solo BD
        try:
            key: Optional[str] = cache_key(serial, tenant_id, await self.generation(serial))
            cached = await self._store.get(key)
        except StoreUnavailableError as e:
            logger.warning("[AUTH] Device auth cache read failed, using DB: %s", e)
            key, cached = None, None

        if cached:
            try:
                return Device.from_cache(orjson.loads(cached))
            except (orjson.JSONDecodeError, KeyError, ValueError):
                logger.warning("[AUTH] Corrupt device auth cache entry %s, dropping", key)
                try:
                    await self._store.delete(key)
                except StoreUnavailableError as e:
                    logger.warning("[AUTH] Device auth cache delete failed: %s", e)

        async with self._sessions() as db:
            device = await device_repository.get_device_by_serial(db, serial)

        if device is None or device.tenant_id != tenant_id:
            return None

        if key is not None:
            try:
                await self._store.set(key, orjson.dumps(device.to_cache()).decode(), self._ttl)
            except StoreUnavailableError as e:
                logger.warning("[AUTH] Device auth cache write failed: %s", e)
        return device

    async def invalidate(self, serial: str, tenant_id: Optional[int]) -> None:
        """Descarta lo cacheado para el serial. Llamar después del commit del nuevo vínculo."""
        previous = await self.generation(serial)
        await self._store.set(generation_key(serial), uuid.uuid4().hex)
        if tenant_id is not None:
            await self._store.delete(cache_key(serial, tenant_id, previous))
        logger.debug("[AUTH] Device auth cache invalidated serial=%s tenant=%s", serial, tenant_id)
