"""Shared fixtures: a file-backed SQLite database and a fake Redis per test."""

import fakeredis.aioredis
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from tablepoints.app.db import create_sessionmaker, init_models
from tablepoints.app.repos_sqlalchemy import restaurants_repo_sql, settings_repo_sql
from tablepoints.app.schemas import AppSettingsUpdate
from tablepoints.app.services.settings_resolver import SettingsResolver


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def engine(tmp_path, anyio_backend):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tablepoints.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return create_sessionmaker(engine)


@pytest.fixture
async def redis(anyio_backend):
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def resolver(sessionmaker, redis):
    return SettingsResolver(sessionmaker, redis, ttl=60)


@pytest.fixture
def make_restaurant(sessionmaker):
    """Return a factory creating a restaurant with optional settings overrides."""

    async def _make(name="Noodle Bar", points=10, timezone=None, **settings):
        async with sessionmaker() as session:
            async with session.begin():
                restaurant = await restaurants_repo_sql.add_restaurant(
                    session, name, points=points, timezone=timezone
                )
                if settings:
                    await settings_repo_sql.update_settings(
                        session, restaurant.id, AppSettingsUpdate(**settings)
                    )
        return restaurant

    return _make


