"""Auth module - Sesiones revocables y autorización de dispositivos."""

from .sessions import SessionAuthority, SessionPrincipal, session_key
from .device_auth import DeviceAuthorizationCache, cache_key
from .dependencies import bearer_token, require_session

__all__ = [
    "SessionAuthority",
    "SessionPrincipal",
    "session_key",
    "DeviceAuthorizationCache",
    "cache_key",
    "bearer_token",
    "require_session",
]
