"""Redis layer - Store clave-valor para sesiones y cache de autorización."""

from __future__ import annotations

import logging
from typing import Optional

from .store import KeyValueStore
from .connection import RedisKeyValueStore
from .memory import InMemoryKeyValueStore

logger = logging.getLogger(__name__)


def create_kv_store(redis_url: Optional[str]) -> KeyValueStore:
    """Crea el store según configuración. Sin REDIS_URL usa memoria."""
    if not redis_url:
        logger.warning("[REDIS] REDIS_URL not configured - using in-process store")
        return InMemoryKeyValueStore()
    return RedisKeyValueStore.from_url(redis_url)


__all__ = [
    "KeyValueStore",
    "RedisKeyValueStore",
    "InMemoryKeyValueStore",
    "create_kv_store",
]
