"""Health, readiness y métricas."""

from fastapi import APIRouter, HTTPException, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from common.db import check_connection

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Liveness probe: responde ok mientras el proceso esté vivo."""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness probe: verifica DB y key-value store."""
    state = request.app.state
    db_ok = await check_connection(state.engine)
    kv_ok = await state.services.kv.ping()
    if not (db_ok and kv_ok):
        raise HTTPException(status_code=503, detail="not ready")

    receiver = state.services.receiver
    return {
        "status": "ready",
        "mqtt": receiver.health_check() if receiver else {"running": False},
        "realtime_connections": state.services.hub.connection_count(),
    }


@router.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
