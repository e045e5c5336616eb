"""Alert Lifecycle Manager - máquina de estados y consultas de alertas.

Estados:
    pending(0) → notified(1) → {acknowledged(2), ignored(3)}

Reglas:
- Solo se resuelve desde pending/notified (UPDATE condicional status < 2)
- Una alerta terminal nunca se reabre
- Dos resoluciones concurrentes: exactamente una gana, la otra recibe
  ALREADY_RESOLVED. Los conflictos son resultados, no excepciones
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...core.clock import utcnow
from ...core.domain import (
    Alert,
    AlertPage,
    AlertStats,
    AlertStatus,
    Severity,
    StatusBucket,
    TransitionOutcome,
    TERMINAL_STATUSES,
)
from ...infrastructure.persistence import alert_repository as repo
from ...infrastructure.persistence.session import transaction

logger = logging.getLogger(__name__)

Scope = Union[int, Iterable[int]]


def _scope_ids(scope: Scope) -> list[int]:
    if isinstance(scope, int):
        return [scope]
    return sorted({int(t) for t in scope})


class AlertLifecycleManager:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def create(
        self,
        event_id: int,
        tenant_id: int,
        severity: Severity,
        message: str,
    ) -> Alert:
        """Crea una alerta en estado pending."""
        now = utcnow()
        async with transaction(self._sessions) as db:
            alert_id = await repo.insert_alert(db, event_id, tenant_id, severity, message, now)

        return Alert(
            id=alert_id,
            event_id=event_id,
            tenant_id=tenant_id,
            severity=severity,
            message=message,
            status=AlertStatus.PENDING,
            created_at=now,
        )

    async def get(self, alert_id: int) -> Optional[Alert]:
        async with self._sessions() as db:
            return await repo.get_alert(db, alert_id)

    async def transition(
        self,
        alert_id: int,
        actor_id: int,
        new_status: Union[AlertStatus, int],
    ) -> TransitionOutcome:
        """Resuelve una alerta (acknowledged o ignored).

        Raises:
            ValueError: si new_status no es un estado terminal
        """
        try:
            target = AlertStatus(int(new_status))
        except ValueError:
            raise ValueError(f"invalid alert status: {new_status!r}") from None
        if target not in TERMINAL_STATUSES:
            raise ValueError(f"alert can only be resolved to acknowledged/ignored, got {target.name}")

        async with transaction(self._sessions) as db:
            rowcount = await repo.resolve_alert(db, alert_id, target, actor_id, utcnow())

        if rowcount == 1:
            logger.info(
                "[ALERTS] Alert %s resolved as %s by subject=%s",
                alert_id,
                target.name.lower(),
                actor_id,
            )
            return TransitionOutcome.RESOLVED

        # Perdimos (o la alerta no existe): releer para distinguir
        current = await self.get(alert_id)
        if current is None:
            return TransitionOutcome.NOT_FOUND

        logger.info(
            "[ALERTS] Alert %s already resolved (status=%s), %s by subject=%s ignored",
            alert_id,
            current.status.name.lower(),
            target.name.lower(),
            actor_id,
        )
        return TransitionOutcome.ALREADY_RESOLVED

    async def mark_notified(self, alert_id: int) -> bool:
        """pending → notified. Retorna False si la alerta ya no estaba pending."""
        async with transaction(self._sessions) as db:
            rowcount = await repo.mark_notified(db, alert_id)
        return rowcount == 1

    async def list(
        self,
        scope: Scope,
        bucket: Union[StatusBucket, str] = StatusBucket.ALL,
        page: int = 1,
        limit: int = 20,
    ) -> AlertPage:
        bucket = StatusBucket(bucket)
        page = max(int(page), 1)
        limit = max(int(limit), 1)

        async with self._sessions() as db:
            items, total = await repo.list_alerts(db, _scope_ids(scope), bucket, page, limit)
        return AlertPage(items=items, total=total, page=page, limit=limit)

    async def delete(self, alert_id: int) -> bool:
        """Borrado físico incondicional."""
        async with transaction(self._sessions) as db:
            rowcount = await repo.delete_alert(db, alert_id)
        if rowcount:
            logger.info("[ALERTS] Alert %s deleted", alert_id)
        return rowcount > 0

    async def stats(self, scope: Scope) -> AlertStats:
        async with self._sessions() as db:
            return await repo.alert_stats(db, _scope_ids(scope))
