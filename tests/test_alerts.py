"""Tests de generación y ciclo de vida de alertas."""

import asyncio

import orjson
import pytest

from guardian_api.core.domain import AlertStatus, Severity, StatusBucket, TransitionOutcome
from guardian_api.mqtt.router import RouteResult

from tests.helpers import Recorder, add_member


async def _raise_alert(services, serial="CAM001", tenant_id=7, event_type="fall_detection"):
    device = await services.registry.get_device(serial)
    if device is None:
        device = await services.registry.create_device(serial, tenant_id=tenant_id)
    record = await services.recorder.record_event(device, event_type, {})
    return await services.alerts.maybe_raise_alert(event_type, {}, device, record.id)


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_fall_detection_on_bus(self, services, sessions_db):
        await add_member(sessions_db, 7, 100)
        member = Recorder()
        await services.hub.connect(100, member)
        await services.registry.create_device("CAM001", tenant_id=7)

        result = await services.router.handle(
            "guardian/7/CAM001/event",
            orjson.dumps({"event_type": "fall_detection", "event_data": {"confidence": 0.97}}),
        )

        assert result is RouteResult.PROCESSED
        events, total = await services.recorder.list_events(7)
        assert total == 1
        event = events[0]
        assert event.event_type == "fall_detection"
        assert event.payload == {"confidence": 0.97}

        page = await services.lifecycle.list(7, StatusBucket.PENDING)
        assert page.total == 1
        alert = page.items[0]
        assert alert.event_id == event.id
        assert alert.severity is Severity.CRITICAL
        assert alert.status is AlertStatus.PENDING

        assert member.types() == ["new_event", "new_alert"]
        pushed = member.of_type("new_alert")[0]
        assert pushed["id"] == alert.id
        assert pushed["alertLevel"] == 3
        assert pushed["circleId"] == 7

    @pytest.mark.asyncio
    async def test_no_alert_for_benign_event(self, services):
        device = await services.registry.create_device("W001", tenant_id=7)
        record = await services.recorder.record_event(device, "heart_rate_abnormal", {"heart_rate": 80})

        alert = await services.alerts.maybe_raise_alert("heart_rate_abnormal", {"heart_rate": 80}, device, record.id)

        assert alert is None
        assert (await services.lifecycle.list(7)).total == 0

    @pytest.mark.asyncio
    async def test_every_occurrence_alerts(self, services):
        await _raise_alert(services)
        await _raise_alert(services)
        assert (await services.lifecycle.list(7)).total == 2


class TestTransitions:
    @pytest.mark.asyncio
    async def test_acknowledge(self, services):
        alert = await _raise_alert(services)

        outcome = await services.lifecycle.transition(alert.id, 100, AlertStatus.ACKNOWLEDGED)

        assert outcome is TransitionOutcome.RESOLVED
        stored = await services.lifecycle.get(alert.id)
        assert stored.status is AlertStatus.ACKNOWLEDGED
        assert stored.resolved_by == 100
        assert stored.resolved_at is not None

    @pytest.mark.asyncio
    async def test_concurrent_acknowledge_and_ignore(self, services):
        alert = await _raise_alert(services)

        outcomes = await asyncio.gather(
            services.lifecycle.transition(alert.id, 100, AlertStatus.ACKNOWLEDGED),
            services.lifecycle.transition(alert.id, 200, AlertStatus.IGNORED),
        )

        assert sorted(o.value for o in outcomes) == ["already_resolved", "resolved"]
        stored = await services.lifecycle.get(alert.id)
        winner = outcomes.index(TransitionOutcome.RESOLVED)
        assert stored.status is (AlertStatus.ACKNOWLEDGED if winner == 0 else AlertStatus.IGNORED)
        assert stored.resolved_by == (100 if winner == 0 else 200)

    @pytest.mark.asyncio
    async def test_terminal_alert_is_never_reopened(self, services):
        alert = await _raise_alert(services)
        await services.lifecycle.transition(alert.id, 100, AlertStatus.IGNORED)

        outcome = await services.lifecycle.transition(alert.id, 200, AlertStatus.ACKNOWLEDGED)

        assert outcome is TransitionOutcome.ALREADY_RESOLVED
        stored = await services.lifecycle.get(alert.id)
        assert stored.status is AlertStatus.IGNORED
        assert stored.resolved_by == 100

    @pytest.mark.asyncio
    async def test_unknown_alert(self, services):
        assert await services.lifecycle.transition(9999, 100, 2) is TransitionOutcome.NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [0, 1, 7])
    async def test_non_terminal_target_is_rejected(self, services, status):
        alert = await _raise_alert(services)
        with pytest.raises(ValueError):
            await services.lifecycle.transition(alert.id, 100, status)

    @pytest.mark.asyncio
    async def test_mark_notified(self, services):
        alert = await _raise_alert(services)

        assert await services.lifecycle.mark_notified(alert.id) is True
        assert await services.lifecycle.mark_notified(alert.id) is False
        assert (await services.lifecycle.get(alert.id)).status is AlertStatus.NOTIFIED

        outcome = await services.lifecycle.transition(alert.id, 100, AlertStatus.ACKNOWLEDGED)
        assert outcome is TransitionOutcome.RESOLVED


class TestQueries:
    @pytest.mark.asyncio
    async def test_buckets_and_pagination(self, services):
        alerts = [await _raise_alert(services) for _ in range(5)]
        await services.lifecycle.transition(alerts[0].id, 100, AlertStatus.ACKNOWLEDGED)
        await services.lifecycle.transition(alerts[1].id, 100, AlertStatus.IGNORED)
        await services.lifecycle.mark_notified(alerts[2].id)

        pending = await services.lifecycle.list(7, StatusBucket.PENDING)
        resolved = await services.lifecycle.list(7, "resolved")
        page = await services.lifecycle.list(7, StatusBucket.ALL, page=2, limit=2)

        assert pending.total == 3
        assert resolved.total == 2
        assert page.total == 5
        assert page.total_pages == 3
        assert len(page.items) == 2
        # Más recientes primero
        assert page.items[0].id == alerts[2].id

    @pytest.mark.asyncio
    async def test_scope_by_tenant_set(self, services):
        await _raise_alert(services, "CAM001", 7)
        await _raise_alert(services, "CAM002", 8)
        await _raise_alert(services, "CAM003", 9)

        assert (await services.lifecycle.list({7, 8})).total == 2
        assert (await services.lifecycle.list([])).total == 0

    @pytest.mark.asyncio
    async def test_stats(self, services):
        a = await _raise_alert(services, "CAM001", 7)
        b = await _raise_alert(services, "CAM002", 8)
        await _raise_alert(services, "CAM002", 8)
        await services.lifecycle.transition(a.id, 100, AlertStatus.ACKNOWLEDGED)
        await services.lifecycle.transition(b.id, 100, AlertStatus.IGNORED)

        stats = await services.lifecycle.stats([7, 8])

        assert stats.total == 3
        assert stats.pending == 1
        assert stats.acknowledged == 1
        assert stats.ignored == 1
        assert stats.affected_tenants == 2

    @pytest.mark.asyncio
    async def test_delete(self, services):
        alert = await _raise_alert(services)
        await services.lifecycle.transition(alert.id, 100, AlertStatus.ACKNOWLEDGED)

        assert await services.lifecycle.delete(alert.id) is True
        assert await services.lifecycle.delete(alert.id) is False
        assert await services.lifecycle.get(alert.id) is None
