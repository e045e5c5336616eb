"""Pipeline de telemetría: handlers por tipo de mensaje y barrido de liveness.

event     → EventRecorder → AlertGenerator
heartbeat → LivenessTracker.touch_heartbeat
state     → LivenessTracker.apply_state
sweep     → LivenessTracker.sweep → evento device_offline (y su alerta)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..core.clock import utcnow
from ..core.domain import Device, EventRecord, MessageKind
from ..mqtt.router import Handler
from ..mqtt.validators import EventPayload, HeartbeatPayload, StatePayload
from .alerts import AlertGenerator
from .events import EventRecorder
from .liveness import LivenessTracker

logger = logging.getLogger(__name__)


class TelemetryPipeline:
    def __init__(
        self,
        recorder: EventRecorder,
        alerts: AlertGenerator,
        liveness: LivenessTracker,
        offline_events_enabled: bool = True,
    ):
        self.recorder = recorder
        self.alerts = alerts
        self.liveness = liveness
        self.offline_events_enabled = offline_events_enabled

    def handlers(self) -> dict[MessageKind, Handler]:
        return {
            MessageKind.EVENT: self.on_event,
            MessageKind.HEARTBEAT: self.on_heartbeat,
            MessageKind.STATE: self.on_state,
        }

    async def on_event(self, device: Device, message: EventPayload) -> EventRecord:
        record = await self.recorder.record_event(
            device,
            message.event_type,
            message.event_data,
            occurred_at=message.occurred_at,
        )
        await self.alerts.maybe_raise_alert(record.event_type, record.payload, device, record.id)
        return record

    async def on_heartbeat(self, device: Device, message: HeartbeatPayload) -> Optional[Device]:
        return await self.liveness.touch_heartbeat(device, message.firmware_version)

    async def on_state(self, device: Device, message: StatePayload) -> Optional[Device]:
        return await self.liveness.apply_state(device, message.state, fault=message.fault)

    async def run_sweep(self, now: Optional[datetime] = None) -> list[Device]:
        """Un barrido de liveness; registra device_offline por cada cambio."""
        now = now or utcnow()
        flipped = await self.liveness.sweep(now)
        if not self.offline_events_enabled:
            return flipped

        for device in flipped:
            if device.tenant_id is None:
                continue
            last = device.last_heartbeat_at
            payload = {
                "reason": "heartbeat_timeout",
                "status": device.status.value,
                "last_heartbeat_at": last.isoformat() if last else None,
            }
            try:
                await self.on_event(device, EventPayload(event_type="device_offline", event_data=payload))
            except Exception:
                logger.exception("[LIVENESS] Failed to record device_offline for %s", device.serial)
        return flipped

    async def sweep_forever(self, interval_seconds: float, stop: asyncio.Event) -> None:
        """Loop del barrido hasta que se active `stop`."""
        logger.info("[LIVENESS] Sweep loop started interval=%.1fs", interval_seconds)
        while not stop.is_set():
            try:
                await self.run_sweep()
            except Exception:
                logger.exception("[LIVENESS] Sweep failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("[LIVENESS] Sweep loop stopped")
