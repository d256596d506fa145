"""Read-through settings lookup used by order admission."""

from __future__ import annotations

import logging

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import get_settings

from ..repos_sqlalchemy import settings_repo_sql
from ..schemas import AppSettings
from . import cache

logger = logging.getLogger(__name__)


class SettingsResolver:
    """Resolve :class:`AppSettings` per restaurant with a Redis cache in front.

    Cached entries may be up to ``ttl`` seconds stale unless the writer calls
    :meth:`invalidate`; closure flags are therefore eventually consistent.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        redis: Redis,
        ttl: int | None = None,
    ) -> None:
        self.sessionmaker = sessionmaker
        self.redis = redis
        self.ttl = ttl if ttl is not None else get_settings().settings_cache_ttl

    async def get(self, restaurant_id: str) -> AppSettings:
        if not restaurant_id:
            return AppSettings()
        key = cache.cache_key(cache.settings_tag(restaurant_id))
        try:
            cached = await self.redis.get(key)
        except RedisError as exc:
            logger.warning("settings cache read failed for %s: %s", restaurant_id, exc)
            cached = None
        if cached:
            try:
                return AppSettings.model_validate_json(cached)
            except ValidationError:
                logger.warning("discarding malformed cached settings for %s", restaurant_id)

        async with self.sessionmaker() as session:
            settings = await settings_repo_sql.get_settings(session, restaurant_id)

        try:
            await self.redis.set(
                key, settings.model_dump_json(by_alias=True), ex=self.ttl
            )
        except RedisError as exc:
            logger.warning("settings cache write failed for %s: %s", restaurant_id, exc)
        return settings

    async def invalidate(self, restaurant_id: str) -> None:
        await cache.invalidate(self.redis, [cache.settings_tag(restaurant_id)])
