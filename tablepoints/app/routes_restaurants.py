"""Restaurant-scoped settings and ledger views."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .deps import get_lang, get_resolver, get_sessionmaker
from .errors import RestaurantNotFound
from .repos_sqlalchemy import logs_repo_sql, restaurants_repo_sql, settings_repo_sql
from .schemas import AppSettingsUpdate
from .services.settings_resolver import SettingsResolver
from .utils.responses import ok

router = APIRouter(prefix="/api/restaurants/{restaurant_id}")

# Credentials stay server-side; settings responses never echo them
_SECRET_SETTINGS = {"admin_password", "kitchen_display_password", "place_order_op_code"}


async def _require_restaurant(session: AsyncSession, restaurant_id: str, lang: str) -> None:
    if await restaurants_repo_sql.get_restaurant(session, restaurant_id) is None:
        raise RestaurantNotFound(restaurant_id, lang=lang)


@router.get("")
async def get_restaurant(
    restaurant_id: str,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    lang: str = Depends(get_lang),
) -> dict:
    async with sessionmaker() as session:
        restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    if restaurant is None:
        raise RestaurantNotFound(restaurant_id, lang=lang)
    return ok(restaurant.model_dump(mode="json", by_alias=True))


@router.get("/settings")
async def read_settings(
    restaurant_id: str,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    lang: str = Depends(get_lang),
) -> dict:
    async with sessionmaker() as session:
        await _require_restaurant(session, restaurant_id, lang)
        settings = await settings_repo_sql.get_settings(session, restaurant_id)
    return ok(settings.model_dump(mode="json", by_alias=True, exclude=_SECRET_SETTINGS))


@router.patch("/settings")
async def patch_settings(
    restaurant_id: str,
    patch: AppSettingsUpdate,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    resolver: SettingsResolver = Depends(get_resolver),
    lang: str = Depends(get_lang),
) -> dict:
    """Apply a partial settings update and drop the cached copy."""
    async with sessionmaker() as session:
        async with session.begin():
            await _require_restaurant(session, restaurant_id, lang)
            settings = await settings_repo_sql.update_settings(session, restaurant_id, patch)
    await resolver.invalidate(restaurant_id)
    return ok(settings.model_dump(mode="json", by_alias=True, exclude=_SECRET_SETTINGS))


@router.get("/point-logs")
async def point_logs(
    restaurant_id: str,
    limit: int = Query(default=90, ge=1, le=366),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    async with sessionmaker() as session:
        logs = await logs_repo_sql.get_point_logs(session, restaurant_id, limit)
    return ok([log.model_dump(by_alias=True) for log in logs])


@router.get("/dish-order-logs")
async def dish_order_logs(
    restaurant_id: str,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    async with sessionmaker() as session:
        logs = await logs_repo_sql.get_dish_order_logs(session, restaurant_id)
    return ok([log.model_dump(by_alias=True) for log in logs])


@router.get("/recharge-logs")
async def recharge_logs(
    restaurant_id: str,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    async with sessionmaker() as session:
        logs = await logs_repo_sql.get_recharge_logs(session, restaurant_id)
    return ok([log.model_dump(mode="json", by_alias=True) for log in logs])
