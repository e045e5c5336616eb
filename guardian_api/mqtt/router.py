"""Topic Router - parseo, validación, autorización y despacho.

FLUJO por mensaje:
1. Parsear topic <prefix>/<tenant_id>/<serial>/<kind>
2. Resolver kind (event, heartbeat, state)
3. Parsear JSON (orjson) y validar con el modelo del kind
4. Autorizar el dispositivo contra el circle del topic
5. Despachar al handler del kind

Cualquier descarte se loguea y se cuenta; nunca hay reintento ni NACK.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

import orjson
from pydantic import BaseModel, ValidationError

from ..auth.device_auth import DeviceAuthorizationCache
from ..core.domain import Device, MessageKind, parse_topic
from ..metrics import BUS_MESSAGES
from .validators import PAYLOAD_MODELS

logger = logging.getLogger(__name__)

Handler = Callable[[Device, Any], Awaitable[Any]]


class RouteResult(str, Enum):
    PROCESSED = "processed"
    MALFORMED = "malformed"
    INVALID = "invalid"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN_KIND = "unknown_kind"


def _require_exhaustive(table: Mapping[MessageKind, Any], what: str) -> None:
    missing = set(MessageKind) - set(table)
    if missing:
        raise ValueError(f"{what} missing for kinds: {sorted(k.value for k in missing)}")


class TopicRouter:
    def __init__(
        self,
        prefix: str,
        device_auth: DeviceAuthorizationCache,
        handlers: Mapping[MessageKind, Handler],
        payload_models: Mapping[MessageKind, type[BaseModel]] = PAYLOAD_MODELS,
    ):
        _require_exhaustive(handlers, "handlers")
        _require_exhaustive(payload_models, "payload models")

        self._prefix = prefix.strip("/")
        self._device_auth = device_auth
        self._handlers = dict(handlers)
        self._models = dict(payload_models)

    async def handle(self, topic: str, payload: bytes) -> RouteResult:
        address = parse_topic(topic, self._prefix)
        if address is None:
            logger.warning("[MQTT] Dropping message with malformed topic: %s", topic)
            return self._done("unknown", RouteResult.MALFORMED)

        kind = MessageKind.parse(address.kind)
        if kind is None:
            logger.warning("[MQTT] Dropping message with unknown kind '%s' topic=%s", address.kind, topic)
            return self._done("unknown", RouteResult.UNKNOWN_KIND)

        try:
            data = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            logger.warning("[MQTT] Dropping unparsable payload topic=%s: %s", topic, e)
            return self._done(kind.value, RouteResult.MALFORMED)

        if not isinstance(data, dict):
            logger.warning("[MQTT] Dropping non-object payload topic=%s", topic)
            return self._done(kind.value, RouteResult.MALFORMED)

        try:
            message = self._models[kind].model_validate(data)
        except ValidationError as e:
            logger.warning(
                "[MQTT] Validation failed topic=%s errors=%d first=%s",
                topic,
                e.error_count(),
                e.errors()[0].get("msg") if e.errors() else "",
            )
            return self._done(kind.value, RouteResult.INVALID)

        device = await self._device_auth.authorize(address.serial, address.tenant_id)
        if device is None:
            logger.warning(
                "[MQTT] SECURITY: device %s not authorized for circle %s (topic=%s)",
                address.serial,
                address.tenant_id,
                topic,
            )
            return self._done(kind.value, RouteResult.UNAUTHORIZED)

        await self._handlers[kind](device, message)
        return self._done(kind.value, RouteResult.PROCESSED)

    @staticmethod
    def _done(kind: str, result: RouteResult) -> RouteResult:
        BUS_MESSAGES.labels(kind=kind, status=result.value).inc()
        return result
