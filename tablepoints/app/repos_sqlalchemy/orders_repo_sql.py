"""SQLAlchemy-backed repository helpers for placed orders."""

from __future__ import annotations

import logging
from typing import List

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Order
from ..schemas import PlacedOrder

logger = logging.getLogger(__name__)


def to_placed_order(row: Order) -> PlacedOrder:
    """Parse an ``orders`` row into a :class:`PlacedOrder`.

    Raises :class:`pydantic.ValidationError` if the stored payload is malformed.
    """

    return PlacedOrder.model_validate(
        {
            "id": row.id,
            "restaurant_id": row.restaurant_id,
            "table_id": row.table_id,
            "table_number": row.table_number,
            "order": row.items,
            "total": row.total,
            "placed_at": row.placed_at,
        }
    )


async def find_by_idempotency_key(
    session: AsyncSession, restaurant_id: str, key: str
) -> Order | None:
    result = await session.execute(
        select(Order).where(
            Order.restaurant_id == restaurant_id, Order.idempotency_key == key
        )
    )
    return result.scalar_one_or_none()


async def get_order(
    session: AsyncSession, restaurant_id: str, order_id: str
) -> Order | None:
    result = await session.execute(
        select(Order)
        .where(Order.id == order_id, Order.restaurant_id == restaurant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_recent(
    session: AsyncSession, restaurant_id: str, limit: int
) -> List[PlacedOrder]:
    """Return the newest ``limit`` orders for the kitchen display.

    Rows that fail to parse are skipped with a warning.
    """

    result = await session.execute(
        select(Order)
        .where(Order.restaurant_id == restaurant_id)
        .order_by(Order.placed_at.desc())
        .limit(limit)
    )
    orders: List[PlacedOrder] = []
    for row in result.scalars():
        try:
            orders.append(to_placed_order(row))
        except ValidationError as exc:
            logger.warning("skipping invalid order %s: %s", row.id, exc)
    return orders
