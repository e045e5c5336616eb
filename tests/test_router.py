"""Tests del Topic Router y la autorización de dispositivos."""

import asyncio

import orjson
import pytest

from guardian_api.auth.device_auth import CACHE_KEY_PREFIX, DeviceAuthorizationCache, cache_key
from guardian_api.core.domain import MessageKind
from guardian_api.core.redis import InMemoryKeyValueStore
from guardian_api.device_registry import DeviceRegistry
from guardian_api.errors import StoreUnavailableError
from guardian_api.mqtt.router import RouteResult, TopicRouter

from tests.helpers import Recorder, add_member


def _event(event_type="fall_detection", **data) -> bytes:
    return orjson.dumps({"event_type": event_type, "event_data": data})


class _SlowCacheWrites(InMemoryKeyValueStore):
    """Retiene la escritura de entradas de autorización hasta `release`."""

    def __init__(self):
        super().__init__()
        self.write_started = asyncio.Event()
        self.release = asyncio.Event()

    async def set(self, key, value, ttl_seconds=None):
        if key.startswith(CACHE_KEY_PREFIX + ":"):
            self.write_started.set()
            await self.release.wait()
        await super().set(key, value, ttl_seconds)


class _BrokenDeletes(InMemoryKeyValueStore):
    async def delete(self, key):
        raise StoreUnavailableError("redis down")


class TestDispatch:
    @pytest.mark.asyncio
    async def test_authorized_event_is_recorded(self, services):
        await services.registry.create_device("CAM001", tenant_id=7)

        result = await services.router.handle("guardian/7/CAM001/event", _event("door_opened"))

        assert result is RouteResult.PROCESSED
        events, total = await services.recorder.list_events(7)
        assert total == 1
        assert events[0].event_type == "door_opened"

    @pytest.mark.asyncio
    async def test_event_timestamp_sets_occurred_at(self, services):
        await services.registry.create_device("CAM001", tenant_id=7)
        payload = orjson.dumps({"event_type": "door_opened", "timestamp": 1767225600})

        await services.router.handle("guardian/7/CAM001/event", payload)

        events, _ = await services.recorder.list_events(7)
        assert int(events[0].occurred_at.timestamp()) == 1767225600

    @pytest.mark.asyncio
    async def test_heartbeat_dispatch(self, services):
        await services.registry.create_device("W001", tenant_id=7)

        result = await services.router.handle(
            "guardian/7/W001/heartbeat", orjson.dumps({"firmware_version": "2.0.1"})
        )

        assert result is RouteResult.PROCESSED
        device = await services.registry.get_device("W001")
        assert device.firmware_version == "2.0.1"
        assert device.status.value == "online"

    @pytest.mark.asyncio
    async def test_state_dispatch(self, services):
        await services.registry.create_device("W001", tenant_id=7)

        result = await services.router.handle(
            "guardian/7/W001/state", orjson.dumps({"state": {"fault": True, "battery": 80}})
        )

        assert result is RouteResult.PROCESSED
        device = await services.registry.get_device("W001")
        assert device.fault is True
        assert device.last_state == {"fault": True, "battery": 80}

    @pytest.mark.asyncio
    async def test_handler_table_must_be_exhaustive(self, services):
        async def handler(device, message):
            return None

        with pytest.raises(ValueError):
            TopicRouter("guardian", services.device_auth, {MessageKind.EVENT: handler})


class TestDrops:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "topic",
        ["guardian/7/CAM001", "guardian/seven/CAM001/event", "other/7/CAM001/event"],
    )
    async def test_malformed_topic(self, services, topic):
        await services.registry.create_device("CAM001", tenant_id=7)
        assert await services.router.handle(topic, _event()) is RouteResult.MALFORMED
        _, total = await services.recorder.list_events(7)
        assert total == 0

    @pytest.mark.asyncio
    async def test_unknown_kind(self, services):
        await services.registry.create_device("CAM001", tenant_id=7)
        result = await services.router.handle("guardian/7/CAM001/telemetry", _event())
        assert result is RouteResult.UNKNOWN_KIND

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [b"{not json", b"[1, 2]", b""])
    async def test_unparsable_payload(self, services, payload):
        await services.registry.create_device("CAM001", tenant_id=7)
        result = await services.router.handle("guardian/7/CAM001/event", payload)
        assert result is RouteResult.MALFORMED

    @pytest.mark.asyncio
    async def test_payload_failing_validation(self, services):
        await services.registry.create_device("CAM001", tenant_id=7)
        result = await services.router.handle("guardian/7/CAM001/event", orjson.dumps({"event_data": {}}))
        assert result is RouteResult.INVALID

    @pytest.mark.asyncio
    async def test_millisecond_timestamp_is_invalid(self, services):
        await services.registry.create_device("CAM001", tenant_id=7)
        payload = orjson.dumps({"event_type": "sos_alert", "timestamp": 1767225600000})

        result = await services.router.handle("guardian/7/CAM001/event", payload)

        assert result is RouteResult.INVALID
        _, total = await services.recorder.list_events(7)
        assert total == 0


class TestDeviceAuthorization:
    @pytest.mark.asyncio
    async def test_wrong_tenant_records_nothing(self, services, sessions_db):
        await services.registry.create_device("CAM001", tenant_id=7)
        await add_member(sessions_db, 8, 1)
        watcher = Recorder()
        await services.hub.connect(1, watcher)

        result = await services.router.handle("guardian/8/CAM001/event", _event())

        assert result is RouteResult.UNAUTHORIZED
        _, total = await services.recorder.list_events(8)
        assert total == 0
        assert watcher.of_type("new_event") == []

    @pytest.mark.asyncio
    async def test_unknown_device(self, services):
        result = await services.router.handle("guardian/7/GHOST/event", _event())
        assert result is RouteResult.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_unbound_device_is_rejected(self, services):
        await services.registry.create_device("CAM002")
        result = await services.router.handle("guardian/7/CAM002/event", _event())
        assert result is RouteResult.UNAUTHORIZED
        _, total = await services.recorder.list_events(7)
        assert total == 0

    @pytest.mark.asyncio
    async def test_only_positive_results_are_cached(self, services, kv):
        await services.registry.create_device("CAM001", tenant_id=7)

        await services.router.handle("guardian/7/CAM001/event", _event("door_opened"))
        await services.router.handle("guardian/8/CAM001/event", _event("door_opened"))

        assert await kv.get(cache_key("CAM001", 7)) is not None
        assert await kv.get(cache_key("CAM001", 8)) is None

    @pytest.mark.asyncio
    async def test_unbind_invalidates_cache(self, services, kv):
        await services.registry.create_device("CAM001", tenant_id=7)
        await services.router.handle("guardian/7/CAM001/event", _event("door_opened"))
        assert await kv.get(cache_key("CAM001", 7)) is not None

        await services.registry.unbind_device("CAM001")

        assert await kv.get(cache_key("CAM001", 7)) is None
        result = await services.router.handle("guardian/7/CAM001/event", _event("door_opened"))
        assert result is RouteResult.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_rebind_moves_authorization(self, services, kv):
        await services.registry.create_device("CAM001", tenant_id=7)
        await services.router.handle("guardian/7/CAM001/event", _event("door_opened"))

        device = await services.registry.bind_device("CAM001", 8)

        assert device.tenant_id == 8
        assert await kv.get(cache_key("CAM001", 7)) is None
        assert await services.router.handle("guardian/7/CAM001/event", _event("door_opened")) is RouteResult.UNAUTHORIZED
        assert await services.router.handle("guardian/8/CAM001/event", _event("door_opened")) is RouteResult.PROCESSED

    @pytest.mark.asyncio
    async def test_event_tenant_is_snapshotted(self, services):
        await services.registry.create_device("CAM001", tenant_id=7)
        await services.router.handle("guardian/7/CAM001/event", _event("door_opened"))

        await services.registry.bind_device("CAM001", 8)

        events, total = await services.recorder.list_events(7)
        assert total == 1
        assert events[0].tenant_id == 7

    @pytest.mark.asyncio
    async def test_unbind_during_cache_write_leaves_no_stale_entry(self, sessions_db):
        store = _SlowCacheWrites()
        cache = DeviceAuthorizationCache(store, sessions_db)
        registry = DeviceRegistry(sessions_db, cache)
        await registry.create_device("CAM001", tenant_id=7)

        in_flight = asyncio.create_task(cache.authorize("CAM001", 7))
        await store.write_started.wait()
        await registry.unbind_device("CAM001")
        store.release.set()
        await in_flight

        assert await cache.authorize("CAM001", 7) is None
        assert await store.get(cache_key("CAM001", 7, await cache.generation("CAM001"))) is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_with_store_down_falls_back_to_db(self, sessions_db):
        store = _BrokenDeletes()
        cache = DeviceAuthorizationCache(store, sessions_db)
        registry = DeviceRegistry(sessions_db, cache)
        await registry.create_device("CAM001", tenant_id=7)
        await store.set(cache_key("CAM001", 7), "{not json")

        device = await cache.authorize("CAM001", 7)

        assert device is not None
        assert device.tenant_id == 7
