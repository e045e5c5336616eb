from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _default_env_file() -> str:
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str
    redis_url: str | None

    mqtt_broker_host: str
    mqtt_broker_port: int
    mqtt_username: str | None
    mqtt_password: str | None
    mqtt_client_id: str
    mqtt_topic_prefix: str
    mqtt_ingest_enabled: bool

    jwt_secret: str
    jwt_ttl_seconds: int
    session_ttl_seconds: int

    device_auth_cache_ttl_seconds: int

    liveness_freshness_seconds: int
    liveness_stale_seconds: int
    liveness_sweep_interval_seconds: float
    offline_events_enabled: bool

    log_level: str


def get_settings() -> Settings:
    # Carga el .env (si existe) sin pisar variables reales del entorno.
    env_file = os.getenv("GUARDIAN_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./guardian.db")
    redis_url = os.getenv("REDIS_URL") or None

    jwt_ttl_seconds = int(os.getenv("JWT_TTL_SECONDS", str(7 * 24 * 3600)))
    # La entrada en el store nunca debe sobrevivir al token firmado.
    session_ttl_seconds = min(
        int(os.getenv("SESSION_TTL_SECONDS", "3600")),
        jwt_ttl_seconds,
    )

    return Settings(
        database_url=database_url,
        redis_url=redis_url,
        mqtt_broker_host=os.getenv("MQTT_BROKER_HOST", "localhost"),
        mqtt_broker_port=int(os.getenv("MQTT_BROKER_PORT", "1883")),
        mqtt_username=os.getenv("MQTT_USERNAME") or None,
        mqtt_password=os.getenv("MQTT_PASSWORD") or None,
        mqtt_client_id=os.getenv("MQTT_CLIENT_ID", "guardian-ingest"),
        mqtt_topic_prefix=os.getenv("MQTT_TOPIC_PREFIX", "guardian").strip("/"),
        mqtt_ingest_enabled=_env_bool("MQTT_INGEST_ENABLED", "true"),
        jwt_secret=os.getenv("JWT_SECRET", "change-me"),
        jwt_ttl_seconds=jwt_ttl_seconds,
        session_ttl_seconds=session_ttl_seconds,
        device_auth_cache_ttl_seconds=int(os.getenv("DEVICE_AUTH_CACHE_TTL_SECONDS", "300")),
        liveness_freshness_seconds=int(os.getenv("LIVENESS_FRESHNESS_SECONDS", "300")),
        liveness_stale_seconds=int(os.getenv("LIVENESS_STALE_SECONDS", "600")),
        liveness_sweep_interval_seconds=float(os.getenv("LIVENESS_SWEEP_INTERVAL_SECONDS", "30")),
        offline_events_enabled=_env_bool("OFFLINE_EVENTS_ENABLED", "true"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
