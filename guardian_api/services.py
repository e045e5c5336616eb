"""Contenedor de servicios del proceso.

Arma todos los componentes a partir de Settings, un sessionmaker y un
store clave-valor. La app FastAPI, el CLI de barrido y los tests usan el
mismo cableado.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from common.config import Settings

from .auth import DeviceAuthorizationCache, SessionAuthority
from .core.redis import KeyValueStore
from .device_registry import DeviceRegistry
from .infrastructure.persistence import MembershipDirectory, SqlMembershipDirectory
from .mqtt import MQTTReceiver, TaskSupervisor, TopicRouter
from .pipelines.alerts import AlertGenerator, AlertLifecycleManager
from .pipelines.events import EventRecorder
from .pipelines.liveness import LivenessTracker
from .pipelines.telemetry import TelemetryPipeline
from .realtime import RealtimeHub


@dataclass
class Services:
    settings: Settings
    kv: KeyValueStore
    sessions_db: async_sessionmaker[AsyncSession]
    membership: MembershipDirectory
    sessions: SessionAuthority
    device_auth: DeviceAuthorizationCache
    registry: DeviceRegistry
    hub: RealtimeHub
    recorder: EventRecorder
    lifecycle: AlertLifecycleManager
    alerts: AlertGenerator
    liveness: LivenessTracker
    telemetry: TelemetryPipeline
    supervisor: TaskSupervisor
    router: TopicRouter
    receiver: Optional[MQTTReceiver] = field(default=None)

    def build_receiver(self) -> MQTTReceiver:
        s = self.settings
        self.receiver = MQTTReceiver(
            self.router,
            self.supervisor,
            topic_prefix=s.mqtt_topic_prefix,
            broker_host=s.mqtt_broker_host,
            broker_port=s.mqtt_broker_port,
            username=s.mqtt_username,
            password=s.mqtt_password,
            client_id=s.mqtt_client_id,
        )
        return self.receiver


def build_services(
    settings: Settings,
    sessions_db: async_sessionmaker[AsyncSession],
    kv: KeyValueStore,
    membership: Optional[MembershipDirectory] = None,
) -> Services:
    membership = membership or SqlMembershipDirectory(sessions_db)

    session_authority = SessionAuthority(
        kv,
        settings.jwt_secret,
        token_ttl_seconds=settings.jwt_ttl_seconds,
        session_ttl_seconds=settings.session_ttl_seconds,
    )
    device_auth = DeviceAuthorizationCache(kv, sessions_db, ttl_seconds=settings.device_auth_cache_ttl_seconds)
    registry = DeviceRegistry(sessions_db, device_auth)

    hub = RealtimeHub(membership)
    recorder = EventRecorder(sessions_db, hub)
    lifecycle = AlertLifecycleManager(sessions_db)
    alerts = AlertGenerator(lifecycle, hub)
    liveness = LivenessTracker(
        sessions_db,
        hub,
        freshness_seconds=settings.liveness_freshness_seconds,
        stale_seconds=settings.liveness_stale_seconds,
    )
    telemetry = TelemetryPipeline(
        recorder,
        alerts,
        liveness,
        offline_events_enabled=settings.offline_events_enabled,
    )
    supervisor = TaskSupervisor()
    router = TopicRouter(settings.mqtt_topic_prefix, device_auth, telemetry.handlers())

    return Services(
        settings=settings,
        kv=kv,
        sessions_db=sessions_db,
        membership=membership,
        sessions=session_authority,
        device_auth=device_auth,
        registry=registry,
        hub=hub,
        recorder=recorder,
        lifecycle=lifecycle,
        alerts=alerts,
        liveness=liveness,
        telemetry=telemetry,
        supervisor=supervisor,
        router=router,
    )
