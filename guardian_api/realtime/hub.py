"""Realtime Fan-out Hub.

Entrega pushes (eventos, alertas, estado de dispositivos, presencia) a
grupos de suscriptores por circle.

GARANTÍAS:
- Best-effort: sin persistencia ni replay
- Un suscriptor que falla no bloquea al resto (envíos concurrentes,
  fallas aisladas, logueadas y contadas)
- El set de circles de cada conexión se reconstruye con una consulta de
  membresía fresca en cada connect; join_circle revalida membresía
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from ..core.clock import utcnow
from ..infrastructure.persistence import MembershipDirectory
from ..metrics import FANOUT_FAILURES, REALTIME_CONNECTIONS

logger = logging.getLogger(__name__)

SendFn = Callable[[dict[str, Any]], Awaitable[None]]

_conn_ids = itertools.count(1)


def envelope(event: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"type": event, "data": data}


@dataclass(eq=False)
class Connection:
    """Una conexión en tiempo real de un sujeto autenticado."""

    subject_id: int
    send: SendFn
    client_kind: str = "web"
    id: int = field(default_factory=lambda: next(_conn_ids))
    tenants: set[int] = field(default_factory=set)


class RealtimeHub:
    def __init__(self, membership: MembershipDirectory):
        self._membership = membership
        self._connections: dict[int, Connection] = {}
        self._groups: dict[int, set[int]] = {}
        self._by_subject: dict[int, set[int]] = {}

        self._client_handlers: dict[str, Callable[[Connection, dict[str, Any]], Awaitable[None]]] = {
            "join_circle": self._on_join_circle,
            "leave_circle": self._on_leave_circle,
            "get_online_users": self._on_get_online_users,
            "send_message": self._on_send_message,
            "ping": self._on_ping,
        }

    # ------------------------------------------------------------------
    # Ciclo de vida de conexiones
    # ------------------------------------------------------------------

    async def connect(self, subject_id: int, send: SendFn, client_kind: str = "web") -> Connection:
        """Registra una conexión y la une a todos los circles del sujeto."""
        conn = Connection(subject_id=subject_id, send=send, client_kind=client_kind)
        tenants = await self._membership.list_tenants(subject_id)

        self._connections[conn.id] = conn
        self._by_subject.setdefault(subject_id, set()).add(conn.id)
        for tenant_id in tenants:
            self._add_to_group(conn, tenant_id)
        REALTIME_CONNECTIONS.set(len(self._connections))

        logger.info(
            "[HUB] Connected conn=%s subject=%s kind=%s circles=%s",
            conn.id,
            subject_id,
            client_kind,
            sorted(conn.tenants),
        )

        for tenant_id in sorted(conn.tenants):
            await self._announce(conn, tenant_id, "user_online")
        return conn

    async def disconnect(self, conn: Connection) -> None:
        if self._connections.pop(conn.id, None) is None:
            return

        subject_conns = self._by_subject.get(conn.subject_id)
        if subject_conns is not None:
            subject_conns.discard(conn.id)
            if not subject_conns:
                del self._by_subject[conn.subject_id]

        tenants = sorted(conn.tenants)
        for tenant_id in tenants:
            self._remove_from_group(conn, tenant_id)
        REALTIME_CONNECTIONS.set(len(self._connections))

        logger.info("[HUB] Disconnected conn=%s subject=%s", conn.id, conn.subject_id)

        for tenant_id in tenants:
            await self._announce(conn, tenant_id, "user_offline")

    async def join_circle(self, conn: Connection, tenant_id: int) -> bool:
        """Une la conexión a un circle si el sujeto es miembro ahora mismo."""
        role = await self._membership.get_role(conn.subject_id, tenant_id)
        if role is None:
            logger.warning(
                "[HUB] SECURITY: join rejected conn=%s subject=%s circle=%s",
                conn.id,
                conn.subject_id,
                tenant_id,
            )
            return False

        if tenant_id not in conn.tenants:
            self._add_to_group(conn, tenant_id)
            await self._announce(conn, tenant_id, "user_online")
        return True

    async def leave_circle(self, conn: Connection, tenant_id: int) -> None:
        if tenant_id not in conn.tenants:
            return
        self._remove_from_group(conn, tenant_id)
        await self._announce(conn, tenant_id, "user_offline")

    def online_users(self, tenant_id: int) -> list[int]:
        subjects = {self._connections[cid].subject_id for cid in self._groups.get(tenant_id, ())}
        return sorted(subjects)

    def connection_count(self) -> int:
        return len(self._connections)

    # ------------------------------------------------------------------
    # Pushes
    # ------------------------------------------------------------------

    async def broadcast_to_tenant(
        self,
        tenant_id: int,
        event: str,
        data: dict[str, Any],
        exclude: Optional[Connection] = None,
    ) -> int:
        """Envía un push a todas las conexiones del circle.

        Returns:
            Cantidad de entregas exitosas
        """
        targets = [
            self._connections[cid]
            for cid in self._groups.get(tenant_id, ())
            if exclude is None or cid != exclude.id
        ]
        return await self._deliver(targets, envelope(event, data))

    async def send_to_subject(self, subject_id: int, event: str, data: dict[str, Any]) -> int:
        targets = [self._connections[cid] for cid in self._by_subject.get(subject_id, ())]
        return await self._deliver(targets, envelope(event, data))

    async def _deliver(self, targets: list[Connection], message: dict[str, Any]) -> int:
        if not targets:
            return 0
        results = await asyncio.gather(*(self._send_one(c, message) for c in targets))
        return sum(1 for ok in results if ok)

    async def _send_one(self, conn: Connection, message: dict[str, Any]) -> bool:
        try:
            await conn.send(message)
            return True
        except Exception as e:
            FANOUT_FAILURES.inc()
            logger.warning(
                "[HUB] Push %s to conn=%s subject=%s failed: %s",
                message.get("type"),
                conn.id,
                conn.subject_id,
                e,
            )
            return False

    async def _announce(self, conn: Connection, tenant_id: int, event: str) -> None:
        await self.broadcast_to_tenant(
            tenant_id,
            event,
            {
                "userId": conn.subject_id,
                "circleId": tenant_id,
                "timestamp": utcnow().isoformat(),
            },
            exclude=conn,
        )

    # ------------------------------------------------------------------
    # Mensajes cliente → servidor
    # ------------------------------------------------------------------

    async def handle_client_message(self, conn: Connection, message: Any) -> None:
        """Despacha un mensaje del cliente. Las fallas vuelven como `error`."""
        if not isinstance(message, dict):
            await self._reply_error(conn, "Invalid message format")
            return

        msg_type = message.get("type")
        data = message.get("data")
        if not isinstance(data, dict):
            # También se acepta el formato plano {"type": ..., "circleId": ...}
            data = {k: v for k, v in message.items() if k != "type"}

        handler = self._client_handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            await self._reply_error(conn, f"Unknown message type: {msg_type}")
            return

        try:
            await handler(conn, data)
        except Exception:
            logger.exception("[HUB] Client message %s from conn=%s failed", msg_type, conn.id)
            await self._reply_error(conn, "Internal error processing message")

    async def _reply(self, conn: Connection, event: str, data: dict[str, Any]) -> None:
        await self._deliver([conn], envelope(event, data))

    async def _reply_error(self, conn: Connection, text: str) -> None:
        await self._reply(conn, "error", {"message": text})

    async def _circle_from(self, conn: Connection, data: dict[str, Any]) -> Optional[int]:
        try:
            return int(data["circleId"])
        except (KeyError, TypeError, ValueError):
            await self._reply_error(conn, "circleId is required")
            return None

    async def _on_join_circle(self, conn: Connection, data: dict[str, Any]) -> None:
        tenant_id = await self._circle_from(conn, data)
        if tenant_id is None:
            return
        if await self.join_circle(conn, tenant_id):
            await self._reply(conn, "joined_circle", {"circleId": tenant_id})
        else:
            await self._reply_error(conn, "Not a member of this circle")

    async def _on_leave_circle(self, conn: Connection, data: dict[str, Any]) -> None:
        tenant_id = await self._circle_from(conn, data)
        if tenant_id is None:
            return
        await self.leave_circle(conn, tenant_id)
        await self._reply(conn, "left_circle", {"circleId": tenant_id})

    async def _on_get_online_users(self, conn: Connection, data: dict[str, Any]) -> None:
        tenant_id = await self._circle_from(conn, data)
        if tenant_id is None:
            return
        if await self._membership.get_role(conn.subject_id, tenant_id) is None:
            await self._reply_error(conn, "Not a member of this circle")
            return
        await self._reply(
            conn,
            "online_users",
            {"circleId": tenant_id, "users": self.online_users(tenant_id)},
        )

    async def _on_send_message(self, conn: Connection, data: dict[str, Any]) -> None:
        tenant_id = await self._circle_from(conn, data)
        if tenant_id is None:
            return
        if await self._membership.get_role(conn.subject_id, tenant_id) is None:
            await self._reply_error(conn, "Not a member of this circle")
            return
        await self.broadcast_to_tenant(
            tenant_id,
            "new_message",
            {
                "circleId": tenant_id,
                "senderId": conn.subject_id,
                "message": data.get("message"),
                "messageType": data.get("messageType", "text"),
                "timestamp": utcnow().isoformat(),
            },
        )

    async def _on_ping(self, conn: Connection, data: dict[str, Any]) -> None:
        await self._reply(conn, "pong", {"timestamp": utcnow().isoformat()})

    # ------------------------------------------------------------------

    def _add_to_group(self, conn: Connection, tenant_id: int) -> None:
        conn.tenants.add(tenant_id)
        self._groups.setdefault(tenant_id, set()).add(conn.id)

    def _remove_from_group(self, conn: Connection, tenant_id: int) -> None:
        conn.tenants.discard(tenant_id)
        group = self._groups.get(tenant_id)
        if group is not None:
            group.discard(conn.id)
            if not group:
                del self._groups[tenant_id]
