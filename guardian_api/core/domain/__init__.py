"""Domain layer - Modelos canónicos del pipeline."""

from .alert import (
    Alert,
    AlertPage,
    AlertStats,
    AlertStatus,
    Severity,
    StatusBucket,
    TransitionOutcome,
    TERMINAL_STATUSES,
)
from .device import Device, DeviceStatus
from .event import EventRecord
from .messages import MessageKind, TopicAddress, parse_topic, subscription_topic

__all__ = [
    "Alert",
    "AlertPage",
    "AlertStats",
    "AlertStatus",
    "Severity",
    "StatusBucket",
    "TransitionOutcome",
    "TERMINAL_STATUSES",
    "Device",
    "DeviceStatus",
    "EventRecord",
    "MessageKind",
    "TopicAddress",
    "parse_topic",
    "subscription_topic",
]
