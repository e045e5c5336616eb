"""Excepciones del servicio."""

from __future__ import annotations


class GuardianError(Exception):
    """Base de todos los errores del servicio."""


class AuthenticationError(GuardianError):
    """Token ausente, inválido, expirado o revocado (401)."""

    def __init__(self, reason: str = "unauthenticated"):
        super().__init__(reason)
        self.reason = reason


class AuthorizationError(GuardianError):
    """Sesión válida pero sin permisos para el recurso (403)."""

    def __init__(self, reason: str = "forbidden"):
        super().__init__(reason)
        self.reason = reason


class StoreUnavailableError(GuardianError):
    """El store relacional o clave-valor no respondió para esta operación."""
