"""WebSocket handler para pushes en tiempo real.

Protocolo:
1. Cliente conecta a /ws con `Authorization: Bearer <token>` (o ?token=)
   y `X-Client-Kind` (o ?client_kind=, por defecto "web")
2. Sesión inválida → close 1008 antes de unirse a nada
3. Servidor une la conexión a todos los circles del sujeto
4. Cliente ↔ servidor: {"type": <evento>, "data": {...}}
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect, status

from ...auth.dependencies import DEFAULT_CLIENT_KIND, bearer_token
from ...errors import AuthenticationError

logger = logging.getLogger(__name__)


async def websocket_realtime(websocket: WebSocket):
    services = websocket.app.state.services

    token = bearer_token(websocket.headers.get("authorization")) or websocket.query_params.get("token")
    client_kind = (
        websocket.headers.get("x-client-kind")
        or websocket.query_params.get("client_kind")
        or DEFAULT_CLIENT_KIND
    )

    try:
        principal = await services.sessions.validate(token, client_kind)
    except AuthenticationError as e:
        logger.info("[HUB] WebSocket rejected: %s", e.reason)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.reason)
        return

    await websocket.accept()

    async def send(message: dict[str, Any]) -> None:
        await websocket.send_json(message)

    conn = await services.hub.connect(principal.subject_id, send, client_kind=client_kind)
    try:
        await websocket.send_json(
            {
                "type": "connected",
                "data": {"userId": principal.subject_id, "circles": sorted(conn.tenants)},
            }
        )
        while True:
            message = await websocket.receive_json()
            await services.hub.handle_client_message(conn, message)
    except WebSocketDisconnect:
        logger.debug("[HUB] WebSocket closed by client conn=%s", conn.id)
    except (ValueError, KeyError):
        # Texto que no es JSON, o frame binario (sin "text")
        logger.warning("[HUB] Invalid frame from conn=%s, closing", conn.id)
        await websocket.close(code=status.WS_1003_UNSUPPORTED_DATA)
    finally:
        await services.hub.disconnect(conn)
