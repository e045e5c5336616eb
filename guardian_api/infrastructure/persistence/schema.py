"""Tablas del store relacional.

devices, event_log y alert_log son del pipeline. circle_members pertenece
al servicio de membresías externo; aquí solo se lee.
"""

from __future__ import annotations

import logging

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    SmallInteger,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

metadata = MetaData()

# BigInteger no autoincrementa en SQLite; la variante mantiene INTEGER allí.
_Id = BigInteger().with_variant(Integer(), "sqlite")

devices = Table(
    "devices",
    metadata,
    Column("id", _Id, primary_key=True, autoincrement=True),
    Column("serial", String(64), nullable=False, unique=True),
    Column("name", String(128), nullable=True),
    Column("tenant_id", Integer, nullable=True, index=True),
    Column("status", String(16), nullable=False, default="unbound"),
    Column("fault", Boolean, nullable=False, default=False),
    Column("last_heartbeat_at", DateTime(timezone=True), nullable=True),
    Column("firmware_version", String(64), nullable=True),
    Column("config", JSON, nullable=True),
    Column("last_state", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

event_log = Table(
    "event_log",
    metadata,
    Column("id", _Id, primary_key=True, autoincrement=True),
    Column("device_id", _Id, ForeignKey("devices.id"), nullable=False),
    Column("tenant_id", Integer, nullable=False),
    Column("event_type", String(64), nullable=False),
    Column("payload", JSON, nullable=False),
    Column("occurred_at", DateTime(timezone=True), nullable=False),
    Column("recorded_at", DateTime(timezone=True), nullable=False),
    Index("ix_event_log_tenant_occurred", "tenant_id", "occurred_at"),
    Index("ix_event_log_device_occurred", "device_id", "occurred_at"),
)

alert_log = Table(
    "alert_log",
    metadata,
    Column("id", _Id, primary_key=True, autoincrement=True),
    Column("event_id", _Id, ForeignKey("event_log.id"), nullable=False),
    Column("tenant_id", Integer, nullable=False),
    Column("severity", SmallInteger, nullable=False),
    Column("message", Text, nullable=False),
    Column("status", SmallInteger, nullable=False, default=0),
    Column("resolved_by", Integer, nullable=True),
    Column("resolved_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_alert_log_tenant_status", "tenant_id", "status"),
)

circle_members = Table(
    "circle_members",
    metadata,
    Column("id", _Id, primary_key=True, autoincrement=True),
    Column("tenant_id", Integer, nullable=False),
    Column("subject_id", Integer, nullable=False, index=True),
    Column("role", String(32), nullable=False, default="member"),
    UniqueConstraint("tenant_id", "subject_id", name="uq_circle_members_tenant_subject"),
)


async def ensure_schema(engine: AsyncEngine) -> None:
    """Crea las tablas si no existen. Seguro de llamar varias veces."""
    logger.info("[DB] Ensuring schema exists")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
