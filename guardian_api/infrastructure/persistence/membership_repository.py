"""Lectura de membresías (circle_members).

La tabla es propiedad del servicio de circles; este módulo solo responde
"¿X es miembro de Y y con qué rol?" y "¿a qué circles pertenece X?".
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .schema import circle_members

logger = logging.getLogger(__name__)


class MembershipDirectory(Protocol):
    async def get_role(self, subject_id: int, tenant_id: int) -> Optional[str]:
        """Rol del sujeto en el circle, o None si no es miembro."""
        ...

    async def list_tenants(self, subject_id: int) -> list[int]:
        ...


class SqlMembershipDirectory:
    """MembershipDirectory sobre la tabla circle_members."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def get_role(self, subject_id: int, tenant_id: int) -> Optional[str]:
        async with self._sessions() as db:
            row = (
                await db.execute(
                    select(circle_members.c.role).where(
                        and_(
                            circle_members.c.subject_id == subject_id,
                            circle_members.c.tenant_id == tenant_id,
                        )
                    )
                )
            ).first()
        return str(row.role) if row else None

    async def list_tenants(self, subject_id: int) -> list[int]:
        async with self._sessions() as db:
            rows = await db.execute(
                select(circle_members.c.tenant_id)
                .where(circle_members.c.subject_id == subject_id)
                .order_by(circle_members.c.tenant_id)
            )
            return [int(r.tenant_id) for r in rows]
