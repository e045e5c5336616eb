"""Interfaz del store clave-valor."""

from __future__ import annotations

from typing import Optional, Protocol


class KeyValueStore(Protocol):
    """Store clave-valor con TTL por clave.

    Sesiones y cache de autorización dependen solo de esta interfaz.
    Los valores son strings; la serialización es responsabilidad del caller.
    """

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        ...

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Renueva el TTL. Retorna False si la clave no existe."""
        ...

    async def delete(self, key: str) -> bool:
        """Elimina la clave. Retorna True si existía."""
        ...

    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        ...
