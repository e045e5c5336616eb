"""Session Authority - tokens de sesión revocables.

FLUJO:
1. issue(): firma un JWT (HS256) y lo guarda como único valor vigente
   para (subject_id, client_kind)
2. validate(): firma + expiración, y además el token debe ser IGUAL al
   guardado; si lo es, se desliza el TTL de la entrada
3. revoke(): borra la entrada (logout). El token firmado sigue siendo
   criptográficamente válido, pero ya no coincide con nada

Un nuevo login en el mismo client_kind pisa la entrada, así que el token
anterior deja de servir. Clientes de distinto kind conviven.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Iterable, Optional

import jwt

from ..core.clock import utcnow
from ..core.redis import KeyValueStore
from ..errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_KEY_PREFIX = "guardian:session"


def session_key(subject_id: int, client_kind: str) -> str:
    return f"{SESSION_KEY_PREFIX}:{subject_id}:{client_kind}"


@dataclass(frozen=True)
class SessionPrincipal:
    """Sujeto autenticado de una llamada."""

    subject_id: int
    client_kind: str
    role: Optional[str] = None
    claims: dict[str, Any] = field(default_factory=dict)


class SessionAuthority:
    def __init__(
        self,
        store: KeyValueStore,
        secret: str,
        token_ttl_seconds: int = 7 * 24 * 3600,
        session_ttl_seconds: int = 3600,
        clock: Callable = utcnow,
    ):
        self._store = store
        self._secret = secret
        self._token_ttl = int(token_ttl_seconds)
        # La entrada del store no puede durar más que el token firmado.
        self._session_ttl = min(int(session_ttl_seconds), self._token_ttl)
        self._clock = clock

    @property
    def session_ttl_seconds(self) -> int:
        return self._session_ttl

    async def issue(
        self,
        subject_id: int,
        client_kind: str,
        claims: Optional[dict[str, Any]] = None,
    ) -> str:
        """Emite un token y lo registra como el vigente para (subject, kind)."""
        now = self._clock()
        payload: dict[str, Any] = dict(claims or {})
        payload.update(
            {
                "sub": str(subject_id),
                "kind": client_kind,
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(seconds=self._token_ttl)).timestamp()),
                "jti": uuid.uuid4().hex,
            }
        )
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)

        await self._store.set(session_key(subject_id, client_kind), token, self._session_ttl)
        logger.info("[AUTH] Session issued subject=%s kind=%s", subject_id, client_kind)
        return token

    async def validate(self, token: Optional[str], client_kind: str) -> SessionPrincipal:
        """Valida un token presentado.

        Raises:
            AuthenticationError: token ausente, mal firmado, expirado,
                revocado o reemplazado por un login posterior
        """
        if not token:
            raise AuthenticationError()

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.PyJWTError as e:
            logger.info("[AUTH] Token rejected: %s", e)
            raise AuthenticationError() from e

        try:
            subject_id = int(payload["sub"])
        except (TypeError, ValueError) as e:
            raise AuthenticationError() from e

        key = session_key(subject_id, client_kind)
        current = await self._store.get(key)
        if current is None or current != token:
            logger.info(
                "[AUTH] Token is not the current session subject=%s kind=%s",
                subject_id,
                client_kind,
            )
            raise AuthenticationError()

        # Ventana deslizante
        await self._store.expire(key, self._session_ttl)

        return SessionPrincipal(
            subject_id=subject_id,
            client_kind=client_kind,
            role=payload.get("role"),
            claims=payload,
        )

    def authorize(self, principal: SessionPrincipal, roles: Iterable[str] = ()) -> SessionPrincipal:
        """Verifica el rol. Sin roles requeridos, cualquier sesión válida pasa."""
        required = set(roles)
        if required and principal.role not in required:
            logger.info(
                "[AUTH] Forbidden subject=%s role=%s required=%s",
                principal.subject_id,
                principal.role,
                sorted(required),
            )
            raise AuthorizationError()
        return principal

    async def revoke(self, subject_id: int, client_kind: str) -> bool:
        removed = await self._store.delete(session_key(subject_id, client_kind))
        logger.info("[AUTH] Session revoked subject=%s kind=%s existed=%s", subject_id, client_kind, removed)
        return removed
