"""Dobles y utilidades compartidas por los tests."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional

from sqlalchemy import insert

from common.config import Settings
from guardian_api.infrastructure.persistence import circle_members


def make_settings(tmp_path, **overrides) -> Settings:
    base = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        redis_url=None,
        mqtt_broker_host="localhost",
        mqtt_broker_port=1883,
        mqtt_username=None,
        mqtt_password=None,
        mqtt_client_id="guardian-test",
        mqtt_topic_prefix="guardian",
        mqtt_ingest_enabled=False,
        jwt_secret="test-secret-with-enough-length-for-hs256",
        jwt_ttl_seconds=7 * 24 * 3600,
        session_ttl_seconds=3600,
        device_auth_cache_ttl_seconds=300,
        liveness_freshness_seconds=300,
        liveness_stale_seconds=600,
        liveness_sweep_interval_seconds=0,
        offline_events_enabled=True,
        log_level="DEBUG",
    )
    return replace(base, **overrides)


class Recorder:
    """Conexión falsa del hub: graba los mensajes recibidos."""

    def __init__(self, fail: bool = False):
        self.messages: list[dict[str, Any]] = []
        self.fail = fail

    async def __call__(self, message: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(message)

    def types(self) -> list[str]:
        return [m["type"] for m in self.messages]

    def of_type(self, event: str) -> list[dict[str, Any]]:
        return [m["data"] for m in self.messages if m["type"] == event]


class StaticMembership:
    """MembershipDirectory en memoria: {subject_id: {tenant_id: role}}."""

    def __init__(self, members: Optional[dict[int, dict[int, str]]] = None):
        self.members = members or {}

    async def get_role(self, subject_id: int, tenant_id: int) -> Optional[str]:
        return self.members.get(subject_id, {}).get(tenant_id)

    async def list_tenants(self, subject_id: int) -> list[int]:
        return sorted(self.members.get(subject_id, {}))


async def add_member(sessions_db, tenant_id: int, subject_id: int, role: str = "member") -> None:
    async with sessions_db() as db:
        async with db.begin():
            await db.execute(
                insert(circle_members).values(tenant_id=tenant_id, subject_id=subject_id, role=role)
            )
