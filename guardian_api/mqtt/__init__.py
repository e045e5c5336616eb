"""MQTT module - Ingesta de telemetría desde el bus."""

from .receiver import MQTTReceiver, ReceiverStats
from .router import RouteResult, TopicRouter
from .supervisor import TaskSupervisor
from .validators import EventPayload, HeartbeatPayload, StatePayload

__all__ = [
    "MQTTReceiver",
    "ReceiverStats",
    "RouteResult",
    "TopicRouter",
    "TaskSupervisor",
    "EventPayload",
    "HeartbeatPayload",
    "StatePayload",
]
