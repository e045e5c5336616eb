"""CLI del barrido de liveness.

Uso:
    python -m jobs.liveness_sweep --once          # una pasada (cron)
    python -m jobs.liveness_sweep --sleep-seconds 30
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

from common.config import get_settings
from common.db import create_engine_from_settings, create_sessionmaker
from guardian_api.core.redis import create_kv_store
from guardian_api.infrastructure.persistence import ensure_schema
from guardian_api.services import build_services

logger = logging.getLogger(__name__)


async def run(once: bool, sleep_seconds: Optional[float] = None) -> int:
    settings = get_settings()
    engine = create_engine_from_settings(settings)
    kv = create_kv_store(settings.redis_url)
    try:
        await ensure_schema(engine)
        services = build_services(settings, create_sessionmaker(engine), kv)
        interval = sleep_seconds if sleep_seconds is not None else settings.liveness_sweep_interval_seconds

        while True:
            try:
                flipped = await services.telemetry.run_sweep()
                logger.info("[LIVENESS] Sweep done, %d device(s) flipped", len(flipped))
                if once:
                    return len(flipped)
            except Exception as e:
                logger.error("[LIVENESS] Sweep iteration failed: %s", e)
                if once:
                    raise
            await asyncio.sleep(interval)
    finally:
        await kv.close()
        await engine.dispose()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    p = argparse.ArgumentParser(description="Guardian liveness sweep (online → offline/fault)")
    p.add_argument("--sleep-seconds", type=float, default=None)
    p.add_argument("--once", action="store_true", help="run a single sweep and exit")
    args = p.parse_args()

    asyncio.run(run(bool(args.once), args.sleep_seconds))


if __name__ == "__main__":
    main()
