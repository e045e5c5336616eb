"""Persistence layer - Tablas y repositorios del store relacional."""

from .schema import alert_log, circle_members, devices, ensure_schema, event_log, metadata
from .membership_repository import MembershipDirectory, SqlMembershipDirectory

__all__ = [
    "alert_log",
    "circle_members",
    "devices",
    "event_log",
    "metadata",
    "ensure_schema",
    "MembershipDirectory",
    "SqlMembershipDirectory",
]
