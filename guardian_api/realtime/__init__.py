"""Realtime - Fan-out de pushes a suscriptores por circle."""

from .hub import Connection, RealtimeHub, envelope

__all__ = ["Connection", "RealtimeHub", "envelope"]
