"""Métricas Prometheus del servicio."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

BUS_MESSAGES = Counter(
    "guardian_bus_messages_total",
    "Total bus messages handled by the topic router",
    ["kind", "status"],  # status: processed, malformed, invalid, unauthorized, unknown_kind
)

ALERTS_RAISED = Counter(
    "guardian_alerts_raised_total",
    "Total alerts raised",
    ["severity"],
)

REALTIME_CONNECTIONS = Gauge(
    "guardian_realtime_connections",
    "Currently registered realtime connections",
)

FANOUT_FAILURES = Counter(
    "guardian_fanout_failures_total",
    "Pushes that failed to reach a realtime subscriber",
)

LIVENESS_FLIPS = Counter(
    "guardian_liveness_flips_total",
    "Devices flipped by the liveness sweep",
    ["status"],
)

HANDLER_FAILURES = Counter(
    "guardian_handler_failures_total",
    "Bus handler tasks that ended with an exception",
)
