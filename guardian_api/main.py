from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from common.config import Settings, get_settings
from common.db import create_engine_from_settings, create_sessionmaker

from .core.redis import create_kv_store
from .endpoints import alerts_router, health_router
from .infrastructure.persistence import ensure_schema
from .services import build_services
from .transports.websocket import websocket_realtime

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_engine_from_settings(settings)
        await ensure_schema(engine)
        kv = create_kv_store(settings.redis_url)
        services = build_services(settings, create_sessionmaker(engine), kv)

        app.state.settings = settings
        app.state.engine = engine
        app.state.services = services

        if settings.mqtt_ingest_enabled:
            services.build_receiver().start(asyncio.get_running_loop())
        else:
            logger.info("[MQTT] Ingest disabled by MQTT_INGEST_ENABLED")

        stop = asyncio.Event()
        sweep_task: Optional[asyncio.Task] = None
        if settings.liveness_sweep_interval_seconds > 0:
            sweep_task = asyncio.create_task(
                services.telemetry.sweep_forever(settings.liveness_sweep_interval_seconds, stop),
                name="liveness-sweep",
            )

        try:
            yield
        finally:
            stop.set()
            if sweep_task is not None:
                await sweep_task
            if services.receiver is not None:
                services.receiver.stop()
            await services.supervisor.drain(timeout=5.0)
            await kv.close()
            await engine.dispose()
            logger.info("[MAIN] Shutdown complete")

    app = FastAPI(title="Guardian Ingest Service", version="0.1.0", lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(alerts_router)
    app.add_api_websocket_route("/ws", websocket_realtime)
    return app


def _configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_default_app() -> FastAPI:
    """Factory para uvicorn: `uvicorn guardian_api.main:build_default_app --factory`."""
    _configure_logging()
    return create_app()
