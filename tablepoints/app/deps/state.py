"""Dependency helpers exposing objects created at application startup."""

from fastapi import Header, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..i18n import select_language
from ..services.settings_resolver import SettingsResolver


def get_sessionmaker(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker


def get_redis(request: Request) -> Redis:
    return request.app.state.redis


def get_resolver(request: Request) -> SettingsResolver:
    return request.app.state.resolver


def get_lang(accept_language: str | None = Header(default=None)) -> str:
    """Return the catalog language for the ``Accept-Language`` header."""
    return select_language(accept_language)
