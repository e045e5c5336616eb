"""Reglas de negocio para clasificar eventos en alertas.

Tabla estática: un tipo que no está en la tabla nunca genera alerta.
Los tipos con compuerta solo alertan si el campo del payload es numérico
(o el string esperado) y cruza el umbral; un campo ausente nunca alerta.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from ...core.domain import Device, Severity

HEART_RATE_LOW = 50
HEART_RATE_HIGH = 120
BATTERY_LOW_THRESHOLD = 20


def _number(payload: dict[str, Any], field: str) -> Optional[float]:
    value = payload.get(field)
    # bool es subclase de int; no cuenta como lectura
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _always(payload: dict[str, Any]) -> bool:
    return True


def _heart_rate_out_of_range(payload: dict[str, Any]) -> bool:
    hr = _number(payload, "heart_rate")
    if hr is None:
        return False
    return hr < HEART_RATE_LOW or hr > HEART_RATE_HIGH


def _fence_exit(payload: dict[str, Any]) -> bool:
    return payload.get("violation_type") == "exit"


def _battery_low(payload: dict[str, Any]) -> bool:
    level = _number(payload, "battery_level")
    if level is None:
        return False
    return level <= BATTERY_LOW_THRESHOLD


@dataclass(frozen=True)
class AlertRule:
    severity: Severity
    gate: Callable[[dict[str, Any]], bool]
    template: Optional[Callable[[str, dict[str, Any]], str]] = None


@dataclass(frozen=True)
class AlertDecision:
    severity: Severity
    message: str


def _fence_message(name: str, payload: dict[str, Any]) -> str:
    if payload.get("violation_type") == "exit":
        detail = "salió de la zona segura"
    else:
        detail = "entró a una zona prohibida"
    return f"El dispositivo {name} violó una regla de geocerca: {detail}"


RULES: dict[str, AlertRule] = {
    "emergency_button": AlertRule(
        Severity.CRITICAL, _always, lambda n, p: f"El dispositivo {n} activó el botón de emergencia"
    ),
    "fall_detected": AlertRule(
        Severity.CRITICAL, _always, lambda n, p: f"El dispositivo {n} detectó una caída"
    ),
    "fall_detection": AlertRule(
        Severity.CRITICAL, _always, lambda n, p: f"El dispositivo {n} detectó una caída"
    ),
    "location_sos": AlertRule(
        Severity.CRITICAL, _always, lambda n, p: f"El dispositivo {n} envió una señal SOS de ubicación"
    ),
    "sos_alert": AlertRule(
        Severity.CRITICAL, _always, lambda n, p: f"El dispositivo {n} envió una alerta SOS"
    ),
    "stranger_detected": AlertRule(Severity.CRITICAL, _always),
    "heart_rate_abnormal": AlertRule(
        Severity.HIGH,
        _heart_rate_out_of_range,
        lambda n, p: f"El dispositivo {n} detectó ritmo cardíaco anormal: {p.get('heart_rate')} BPM",
    ),
    "fence_violation": AlertRule(Severity.HIGH, _fence_exit, _fence_message),
    "low_battery": AlertRule(
        Severity.LOW,
        _battery_low,
        lambda n, p: f"El dispositivo {n} tiene batería baja: {p.get('battery_level')}%",
    ),
    "device_offline": AlertRule(
        Severity.LOW, _always, lambda n, p: f"El dispositivo {n} está desconectado"
    ),
}


def generic_message(name: str, event_type: str) -> str:
    return f"El dispositivo {name} reportó el evento {event_type}"


def classify(event_type: str, payload: Optional[dict[str, Any]], device: Device) -> Optional[AlertDecision]:
    """Decide si un evento genera alerta.

    Returns:
        AlertDecision (severidad + mensaje) o None si no corresponde alerta
    """
    rule = RULES.get(event_type)
    if rule is None:
        return None

    payload = payload if isinstance(payload, dict) else {}
    if not rule.gate(payload):
        return None

    name = device.display_name
    if rule.template is None:
        message = generic_message(name, event_type)
    else:
        message = rule.template(name, payload)
    return AlertDecision(severity=rule.severity, message=message)
