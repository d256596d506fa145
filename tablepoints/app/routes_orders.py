"""Order placement, kitchen edits and the kitchen pull feed."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse
from pydantic import Field
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .deps import get_lang, get_redis, get_resolver, get_sessionmaker
from .repos_sqlalchemy import orders_repo_sql
from .schemas import CamelModel, OrderItem, PlaceOrderInput, PlaceOrderResult
from .services import cache
from .services.order_placement import place_order
from .services.order_update import update_order
from .services.settings_resolver import SettingsResolver
from .utils.responses import err, ok

router = APIRouter(prefix="/api/restaurants/{restaurant_id}/orders")


class OrderUpdate(CamelModel):
    order: List[OrderItem]
    total: float = Field(ge=0)


def _render(result: PlaceOrderResult) -> JSONResponse | dict:
    if result.code is None:
        return ok(result.model_dump(mode="json", by_alias=True))
    status = 503 if result.is_critical else 422
    return JSONResponse(
        err(result.code, result.error or "", details={"logs": result.logs}),
        status_code=status,
    )


@router.post("")
async def create_order(
    restaurant_id: str,
    payload: PlaceOrderInput,
    idempotency_key: str | None = Header(default=None, max_length=128),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    resolver: SettingsResolver = Depends(get_resolver),
    redis: Redis = Depends(get_redis),
    lang: str = Depends(get_lang),
):
    """Place an order for a table, charging one point."""
    update = {"restaurant_id": restaurant_id}
    if not payload.idempotency_key and idempotency_key:
        update["idempotency_key"] = idempotency_key
    payload = payload.model_copy(update=update)

    result = await place_order(
        payload, sessionmaker=sessionmaker, resolver=resolver, lang=lang
    )
    await cache.invalidate(redis, result.invalidate)
    return _render(result)


@router.patch("/{order_id}")
async def edit_order(
    restaurant_id: str,
    order_id: str,
    payload: OrderUpdate,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    lang: str = Depends(get_lang),
):
    """Replace the items of an existing order without charging."""
    result = await update_order(
        restaurant_id,
        order_id,
        payload.order,
        payload.total,
        sessionmaker=sessionmaker,
        lang=lang,
    )
    return _render(result)


@router.get("")
async def recent_orders(
    restaurant_id: str,
    limit: int | None = Query(default=None, ge=1, le=500),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    resolver: SettingsResolver = Depends(get_resolver),
) -> dict:
    """Return the newest orders for the kitchen display."""
    if limit is None:
        limit = (await resolver.get(restaurant_id)).sync_order_count
    async with sessionmaker() as session:
        orders = await orders_repo_sql.list_recent(session, restaurant_id, limit)
    return ok([order.model_dump(mode="json", by_alias=True) for order in orders])
