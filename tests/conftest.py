"""Fixtures compartidas.

- BD: SQLite en archivo (aiosqlite) por test, así las sesiones
  concurrentes usan conexiones reales distintas
- Store clave-valor: InMemoryKeyValueStore
"""

import pytest
import pytest_asyncio

from common.config import Settings
from common.db import create_engine_from_settings, create_sessionmaker
from guardian_api.core.redis import InMemoryKeyValueStore
from guardian_api.infrastructure.persistence import ensure_schema
from guardian_api.services import build_services

from tests.helpers import make_settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest_asyncio.fixture
async def engine(settings):
    engine = create_engine_from_settings(settings)
    await ensure_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions_db(engine):
    return create_sessionmaker(engine)


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def services(settings, sessions_db, kv):
    return build_services(settings, sessions_db, kv)
