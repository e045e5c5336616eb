from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...errors import StoreUnavailableError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def transaction(sessions: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Sesión con commit al salir y rollback ante error.

    Las fallas de conexión se reportan como StoreUnavailableError; el resto
    de errores de SQLAlchemy (integridad, etc.) se propagan tal cual.
    """
    try:
        async with sessions() as db:
            async with db.begin():
                yield db
    except OperationalError as e:
        logger.error("[DB] Store unavailable: %s", e)
        raise StoreUnavailableError(str(e)) from e
