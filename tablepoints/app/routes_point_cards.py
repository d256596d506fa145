"""Point card redemption for a restaurant."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import Field
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .deps import get_lang, get_redis, get_sessionmaker
from .schemas import CamelModel
from .services import cache
from .services.point_cards import redeem_point_card
from .utils.responses import ok

router = APIRouter(prefix="/api/restaurants/{restaurant_id}/point-cards")


class RedeemRequest(CamelModel):
    card_id: str = Field(min_length=1, max_length=64)


@router.post("/redeem")
async def redeem(
    restaurant_id: str,
    payload: RedeemRequest,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    redis: Redis = Depends(get_redis),
    lang: str = Depends(get_lang),
) -> dict:
    """Consume a card and credit its points to the restaurant."""
    recharge = await redeem_point_card(
        payload.card_id.strip(), restaurant_id, sessionmaker=sessionmaker, lang=lang
    )
    await cache.invalidate(redis, cache.card_redeemed_tags(restaurant_id))
    return ok(recharge.model_dump(mode="json", by_alias=True))
