"""Dependencias FastAPI para proteger endpoints con sesión.

Uso:
    @router.get("/alerts")
    async def list_alerts(principal: SessionPrincipal = Depends(require_session())):
        ...
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request

from ..errors import AuthenticationError, AuthorizationError
from .sessions import SessionPrincipal

DEFAULT_CLIENT_KIND = "web"


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extrae el token de un header `Authorization: Bearer <token>`."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_session(*roles: str):
    """Dependencia que valida la sesión y, opcionalmente, el rol.

    401 si el token no es la sesión vigente; 403 si el rol no alcanza.
    """

    async def dependency(
        request: Request,
        authorization: Optional[str] = Header(None),
        x_client_kind: Optional[str] = Header(None, alias="X-Client-Kind"),
    ) -> SessionPrincipal:
        authority = request.app.state.services.sessions
        client_kind = x_client_kind or DEFAULT_CLIENT_KIND

        try:
            principal = await authority.validate(bearer_token(authorization), client_kind)
        except AuthenticationError as e:
            raise HTTPException(
                status_code=401,
                detail=e.reason,
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            return authority.authorize(principal, roles)
        except AuthorizationError as e:
            raise HTTPException(status_code=403, detail=e.reason)

    return dependency
