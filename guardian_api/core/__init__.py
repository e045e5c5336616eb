"""Core del pipeline de telemetría.

Estructura:
- domain/: Modelos de dominio (Device, EventRecord, Alert)
- redis/: Store clave-valor (Redis o en memoria)
"""
