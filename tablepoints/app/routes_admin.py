"""Super-admin endpoints for tenants and point card stock."""

from __future__ import annotations

from zoneinfo import available_timezones

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field, field_validator
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import get_settings

from .deps import get_lang, get_redis, get_resolver, get_sessionmaker, require_super_admin
from .errors import RestaurantNotFound
from .repos_sqlalchemy import restaurants_repo_sql
from .schemas import CamelModel
from .services import cache, point_cards
from .services.settings_resolver import SettingsResolver
from .utils.responses import ok

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_super_admin)])


class RestaurantCreate(CamelModel):
    name: str
    timezone: str | None = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if value is not None and value not in available_timezones():
            raise ValueError("unknown timezone")
        return value


class RestaurantRename(CamelModel):
    name: str


class PointCardBatch(CamelModel):
    amount: int = Field(gt=0)
    points: int = Field(gt=0)


@router.post("/restaurants")
async def create_restaurant(
    payload: RestaurantCreate,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    redis: Redis = Depends(get_redis),
) -> dict:
    """Create a tenant with the default opening balance."""
    async with sessionmaker() as session:
        async with session.begin():
            restaurant = await restaurants_repo_sql.add_restaurant(
                session,
                payload.name,
                points=get_settings().default_restaurant_points,
                timezone=payload.timezone,
            )
    await cache.invalidate(redis, [cache.RESTAURANTS_TAG])
    return ok(restaurant.model_dump(mode="json", by_alias=True))


@router.get("/restaurants")
async def list_restaurants(
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    async with sessionmaker() as session:
        restaurants = await restaurants_repo_sql.list_restaurants(session)
    return ok([r.model_dump(mode="json", by_alias=True) for r in restaurants])


@router.patch("/restaurants/{restaurant_id}")
async def rename_restaurant(
    restaurant_id: str,
    payload: RestaurantRename,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    redis: Redis = Depends(get_redis),
    lang: str = Depends(get_lang),
) -> dict:
    async with sessionmaker() as session:
        async with session.begin():
            renamed = await restaurants_repo_sql.rename_restaurant(
                session, restaurant_id, payload.name
            )
            if not renamed:
                raise RestaurantNotFound(restaurant_id, lang=lang)
        restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    await cache.invalidate(
        redis, [cache.restaurant_tag(restaurant_id), cache.RESTAURANTS_TAG]
    )
    return ok(restaurant.model_dump(mode="json", by_alias=True))


@router.delete("/restaurants/{restaurant_id}")
async def delete_restaurant(
    restaurant_id: str,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    resolver: SettingsResolver = Depends(get_resolver),
    redis: Redis = Depends(get_redis),
    lang: str = Depends(get_lang),
) -> dict:
    async with sessionmaker() as session:
        async with session.begin():
            if not await restaurants_repo_sql.delete_restaurant(session, restaurant_id):
                raise RestaurantNotFound(restaurant_id, lang=lang)
    await resolver.invalidate(restaurant_id)
    await cache.invalidate(
        redis, [cache.restaurant_tag(restaurant_id), cache.RESTAURANTS_TAG]
    )
    return ok({"deleted": restaurant_id})


@router.post("/restaurants/{restaurant_id}/clear")
async def clear_restaurant(
    restaurant_id: str,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    resolver: SettingsResolver = Depends(get_resolver),
    redis: Redis = Depends(get_redis),
    lang: str = Depends(get_lang),
) -> dict:
    """Drop orders, ledgers and recharge history and reset settings."""
    async with sessionmaker() as session:
        async with session.begin():
            if await restaurants_repo_sql.get_restaurant(session, restaurant_id) is None:
                raise RestaurantNotFound(restaurant_id, lang=lang)
            await restaurants_repo_sql.clear_restaurant_data(session, restaurant_id)
    await resolver.invalidate(restaurant_id)
    await cache.invalidate(
        redis,
        [
            cache.point_logs_tag(restaurant_id),
            cache.dish_order_logs_tag(restaurant_id),
            cache.recharge_logs_tag(restaurant_id),
        ],
    )
    return ok({"cleared": restaurant_id})


@router.post("/point-cards")
async def create_point_cards(
    payload: PointCardBatch,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    redis: Redis = Depends(get_redis),
) -> dict:
    cards = await point_cards.create_point_cards(
        payload.amount, payload.points, sessionmaker=sessionmaker
    )
    await cache.invalidate(redis, [cache.POINT_CARDS_TAG])
    return ok([card.model_dump(mode="json", by_alias=True) for card in cards])


@router.get("/point-cards")
async def list_point_cards(
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    cards = await point_cards.list_point_cards(sessionmaker=sessionmaker)
    return ok([card.model_dump(mode="json", by_alias=True) for card in cards])


@router.get("/point-cards/used")
async def list_used_point_cards(
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    cards = await point_cards.list_used_point_cards(sessionmaker=sessionmaker)
    return ok([card.model_dump(mode="json", by_alias=True) for card in cards])


@router.delete("/point-cards/{card_id}")
async def delete_point_card(
    card_id: str,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    redis: Redis = Depends(get_redis),
    lang: str = Depends(get_lang),
) -> dict:
    if not card_id.strip():
        raise HTTPException(422, "card id required")
    await point_cards.delete_point_card(card_id, sessionmaker=sessionmaker, lang=lang)
    await cache.invalidate(redis, [cache.POINT_CARDS_TAG])
    return ok({"deleted": card_id})
