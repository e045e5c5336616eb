"""Generación de alertas a partir de eventos registrados."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ...core.domain import Alert, Device
from ...metrics import ALERTS_RAISED
from ...realtime import RealtimeHub
from .alert_rules import classify
from .lifecycle import AlertLifecycleManager

logger = logging.getLogger(__name__)


class AlertGenerator:
    def __init__(self, lifecycle: AlertLifecycleManager, hub: RealtimeHub):
        self._lifecycle = lifecycle
        self._hub = hub

    async def maybe_raise_alert(
        self,
        event_type: str,
        payload: Optional[dict[str, Any]],
        device: Device,
        event_id: int,
    ) -> Optional[Alert]:
        """Clasifica el evento y, si corresponde, crea la alerta y la publica.

        Sin ventana de deduplicación: cada ocurrencia que cumple la regla
        genera su propia alerta.
        """
        if device.tenant_id is None:
            return None

        decision = classify(event_type, payload, device)
        if decision is None:
            return None

        alert = await self._lifecycle.create(
            event_id=event_id,
            tenant_id=device.tenant_id,
            severity=decision.severity,
            message=decision.message,
        )
        ALERTS_RAISED.labels(severity=decision.severity.name.lower()).inc()

        logger.info(
            "[ALERTS] Alert %s raised severity=%s event=%s type=%s device=%s circle=%s",
            alert.id,
            decision.severity.name.lower(),
            event_id,
            event_type,
            device.serial,
            device.tenant_id,
        )

        await self._hub.broadcast_to_tenant(
            device.tenant_id,
            "new_alert",
            alert.to_push(event_type=event_type, device_name=device.display_name),
        )
        return alert
