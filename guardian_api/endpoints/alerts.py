"""Endpoints de alertas detrás de la sesión.

Adaptador fino sobre AlertLifecycleManager; el alcance se limita a los
circles del sujeto autenticado.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from ..auth import SessionPrincipal, require_session
from ..core.domain import Alert, AlertStatus, StatusBucket, TransitionOutcome

router = APIRouter(prefix="/alerts", tags=["alerts"])


class TransitionIn(BaseModel):
    status: int


def _alert_out(alert: Alert) -> dict:
    return {
        "id": alert.id,
        "eventId": alert.event_id,
        "circleId": alert.tenant_id,
        "alertLevel": int(alert.severity),
        "alertContent": alert.message,
        "status": int(alert.status),
        "resolvedBy": alert.resolved_by,
        "resolvedAt": alert.resolved_at.isoformat() if alert.resolved_at else None,
        "createdAt": alert.created_at.isoformat(),
    }


async def _scope(request: Request, principal: SessionPrincipal, circle_id: Optional[int]) -> list[int]:
    membership = request.app.state.services.membership
    tenants = await membership.list_tenants(principal.subject_id)
    if circle_id is None:
        return tenants
    if circle_id not in tenants:
        raise HTTPException(status_code=403, detail="forbidden")
    return [circle_id]


@router.get("")
async def list_alerts(
    request: Request,
    circle_id: Optional[int] = Query(None, alias="circleId"),
    bucket: StatusBucket = Query(StatusBucket.ALL, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    principal: SessionPrincipal = Depends(require_session()),
):
    scope = await _scope(request, principal, circle_id)
    result = await request.app.state.services.lifecycle.list(scope, bucket, page, limit)
    return {
        "items": [_alert_out(a) for a in result.items],
        "total": result.total,
        "page": result.page,
        "limit": result.limit,
        "totalPages": result.total_pages,
    }


@router.get("/stats")
async def alert_stats(
    request: Request,
    circle_id: Optional[int] = Query(None, alias="circleId"),
    principal: SessionPrincipal = Depends(require_session()),
):
    scope = await _scope(request, principal, circle_id)
    stats = await request.app.state.services.lifecycle.stats(scope)
    return {
        "total": stats.total,
        "pending": stats.pending,
        "acknowledged": stats.acknowledged,
        "ignored": stats.ignored,
        "affectedCircles": stats.affected_tenants,
    }


async def _load_in_scope(request: Request, principal: SessionPrincipal, alert_id: int) -> Alert:
    services = request.app.state.services
    alert = await services.lifecycle.get(alert_id)
    if alert is None:
        raise HTTPException(status_code=404, detail="alert not found")
    if await services.membership.get_role(principal.subject_id, alert.tenant_id) is None:
        raise HTTPException(status_code=403, detail="forbidden")
    return alert


@router.post("/{alert_id}/status")
async def transition_alert(
    alert_id: int,
    body: TransitionIn,
    request: Request,
    principal: SessionPrincipal = Depends(require_session()),
):
    if body.status not in (AlertStatus.ACKNOWLEDGED, AlertStatus.IGNORED):
        raise HTTPException(status_code=422, detail="status must be 2 (acknowledged) or 3 (ignored)")

    await _load_in_scope(request, principal, alert_id)
    outcome = await request.app.state.services.lifecycle.transition(alert_id, principal.subject_id, body.status)

    if outcome is TransitionOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="alert not found")
    if outcome is TransitionOutcome.ALREADY_RESOLVED:
        raise HTTPException(status_code=409, detail="alert already resolved")
    return {"id": alert_id, "outcome": outcome.value, "status": body.status}


@router.delete("/{alert_id}")
async def delete_alert(
    alert_id: int,
    request: Request,
    principal: SessionPrincipal = Depends(require_session("owner", "admin")),
):
    await _load_in_scope(request, principal, alert_id)
    deleted = await request.app.state.services.lifecycle.delete(alert_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="alert not found")
    return {"id": alert_id, "deleted": True}
