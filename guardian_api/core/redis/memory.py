from __future__ import annotations

import asyncio
import time
from typing import Optional


class InMemoryKeyValueStore:
    """Implementación en memoria del KeyValueStore.

    - Se usa cuando REDIS_URL no está configurado (desarrollo y tests).
    - Estado local al proceso: no sirve con varias réplicas del servicio.
    - Las claves expiradas se eliminan al leerlas.
    """

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    def _alive(self, key: str, now: float) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= now:
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            return self._alive(key, time.monotonic())

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        async with self._lock:
            expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
            self._data[key] = (value, expires_at)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        async with self._lock:
            value = self._alive(key, time.monotonic())
            if value is None:
                return False
            self._data[key] = (value, time.monotonic() + ttl_seconds)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._data.pop(key, None) is not None

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        async with self._lock:
            self._data.clear()

    def ttl(self, key: str) -> Optional[float]:
        """Segundos restantes de la clave (None si no expira o no existe)."""
        entry = self._data.get(key)
        if entry is None or entry[1] is None:
            return None
        return max(0.0, entry[1] - time.monotonic())
