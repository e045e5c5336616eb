"""Receptor MQTT.

paho-mqtt corre su propio hilo de red; cada mensaje se entrega al loop
asyncio con call_soon_threadsafe y se procesa en una tarea supervisada.

Reconexión: paho reintenta con backoff exponencial (1s → 60s). Los
mensajes publicados mientras estamos desconectados se pierden.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import paho.mqtt.client as mqtt

from ..core.domain import subscription_topic
from .router import TopicRouter
from .supervisor import TaskSupervisor

logger = logging.getLogger(__name__)


class ReceiverStats:
    """Estadísticas del receptor MQTT."""

    def __init__(self):
        self.received = 0
        self.dispatched = 0
        self.connects = 0
        self.disconnects = 0
        self.last_message_at: float = 0

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} dispatched={self.dispatched} "
            f"connects={self.connects} disconnects={self.disconnects}"
        )

    def to_dict(self) -> dict:
        return {
            "received": self.received,
            "dispatched": self.dispatched,
            "connects": self.connects,
            "disconnects": self.disconnects,
            "last_message_at": self.last_message_at,
        }


class MQTTReceiver:
    def __init__(
        self,
        router: TopicRouter,
        supervisor: TaskSupervisor,
        topic_prefix: str = "guardian",
        broker_host: str = "localhost",
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "guardian-ingest",
    ):
        self._router = router
        self._supervisor = supervisor
        self.topic = subscription_topic(topic_prefix)
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{int(time.time())}"

        self._client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._running = False
        self._connected = False
        self._stats = ReceiverStats()

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Inicia el cliente. No bloquea: la conexión se completa en background."""
        self._loop = loop or asyncio.get_running_loop()

        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message
        self._client.reconnect_delay_set(min_delay=1, max_delay=60)

        if self.username and self.password:
            self._client.username_pw_set(self.username, self.password)

        logger.info("[MQTT] Connecting to %s:%d", self.broker_host, self.broker_port)
        self._client.connect_async(self.broker_host, self.broker_port, keepalive=60)
        self._client.loop_start()
        self._running = True

    def stop(self) -> None:
        self._running = False
        if self._client:
            try:
                self._client.disconnect()
                self._client.loop_stop()
            except Exception as e:
                logger.warning("[MQTT] Error stopping: %s", e)
        logger.info("[MQTT] Stopped. %s", self._stats)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            self._connected = False
            logger.error("[MQTT] Connection failed: %s", reason_code)
            return

        self._connected = True
        self._stats.connects += 1
        logger.info("[MQTT] Connected to broker")
        # Se re-suscribe en cada reconexión (sesión limpia)
        client.subscribe(self.topic, qos=1)
        logger.info("[MQTT] Subscribed to %s", self.topic)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        self._connected = False
        self._stats.disconnects += 1
        if self._running:
            logger.warning("[MQTT] Disconnected (%s), reconnecting", reason_code)

    def _on_message(self, client, userdata, msg):
        """Callback del hilo de paho: solo entrega al loop."""
        self._stats.received += 1
        self._stats.last_message_at = time.time()

        if self._loop is None or self._loop.is_closed():
            logger.warning("[MQTT] Event loop not available, dropping message topic=%s", msg.topic)
            return
        self._loop.call_soon_threadsafe(self._dispatch, msg.topic, bytes(msg.payload))

    def _dispatch(self, topic: str, payload: bytes) -> None:
        self._stats.dispatched += 1
        self._supervisor.spawn(self._router.handle(topic, payload), name=topic)

    @property
    def is_connected(self) -> bool:
        return self._connected

    def health_check(self) -> dict:
        return {
            "running": self._running,
            "connected": self._connected,
            "broker": f"{self.broker_host}:{self.broker_port}",
            "topic": self.topic,
            "pending_tasks": self._supervisor.pending,
            "failed_tasks": self._supervisor.failed,
            "stats": self._stats.to_dict(),
        }
