from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings


logger = logging.getLogger(__name__)


def create_engine_from_settings(settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()
    url = make_url(settings.database_url)

    # Log de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Creating engine driver=%s host=%s db=%s user=%s",
        url.drivername,
        url.host,
        url.database,
        url.username,
    )

    kwargs: dict = {"pool_pre_ping": True, "future": True}
    if not url.drivername.startswith("sqlite"):
        kwargs["pool_recycle"] = 300

    return create_async_engine(url, **kwargs)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def check_connection(engine: AsyncEngine) -> bool:
    """Ejecuta SELECT 1 para verificar que la BD responde."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("[DB] Connection test OK")
        return True
    except Exception:
        logger.exception("[DB] Connection test FAILED")
        return False
