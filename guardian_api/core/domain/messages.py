"""Contrato de topics del bus.

Formato: <prefix>/<tenant_id>/<device_serial>/<kind>
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MessageKind(str, Enum):
    EVENT = "event"
    HEARTBEAT = "heartbeat"
    STATE = "state"

    @classmethod
    def parse(cls, value: str) -> Optional["MessageKind"]:
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class TopicAddress:
    """Partes de un topic ya parseado. kind queda como string crudo."""

    tenant_id: int
    serial: str
    kind: str


def parse_topic(topic: str, prefix: str) -> Optional[TopicAddress]:
    """Parsea un topic. Retorna None si no cumple el formato."""
    prefix_parts = [p for p in prefix.split("/") if p]
    parts = topic.split("/")

    if parts[: len(prefix_parts)] != prefix_parts:
        return None

    rest = parts[len(prefix_parts):]
    if len(rest) < 3:
        return None

    tenant_raw, serial, kind = rest[0], rest[1], rest[2]
    if not serial or not kind:
        return None

    try:
        tenant_id = int(tenant_raw)
    except ValueError:
        return None

    return TopicAddress(tenant_id=tenant_id, serial=serial, kind=kind)


def subscription_topic(prefix: str) -> str:
    return f"{prefix.strip('/')}/+/+/+"
