"""Kitchen-side edits of an already placed order.

Editing never charges another point and never touches the daily point or
dish-sales logs; the order was paid for when it was placed.
"""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import OrderNotFound
from ..i18n import get_msg
from ..models import Order
from ..repos_sqlalchemy import orders_repo_sql
from ..schemas import OrderItem, PlaceOrderResult

logger = logging.getLogger(__name__)


async def update_order(
    restaurant_id: str,
    order_id: str,
    items: List[OrderItem],
    total: float,
    *,
    sessionmaker: async_sessionmaker[AsyncSession],
    lang: str | None = None,
) -> PlaceOrderResult:
    """Replace the line items and total of ``order_id``.

    A missing order is reported as a critical error rather than silently
    succeeding: the update must match exactly one row and the row must be
    readable afterwards.
    """

    if not restaurant_id:
        return PlaceOrderResult(
            logs=["Update rejected: missing restaurantId."],
            error=get_msg("UPDATE_MISSING_RESTAURANT", lang),
            code="MISSING_RESTAURANT",
        )

    payload = [item.model_dump(mode="json", by_alias=True) for item in items]
    try:
        async with sessionmaker() as session:
            async with session.begin():
                result = await session.execute(
                    update(Order)
                    .where(Order.id == order_id, Order.restaurant_id == restaurant_id)
                    .values(items=payload, total=total)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise OrderNotFound(order_id, lang=lang)
            row = await orders_repo_sql.get_order(session, restaurant_id, order_id)
            if row is None:
                raise OrderNotFound(order_id, lang=lang)
            placed = orders_repo_sql.to_placed_order(row)
    except Exception as exc:
        logger.exception(
            "update_order failed for order %s of restaurant %s", order_id, restaurant_id
        )
        return PlaceOrderResult(
            logs=[f"CRITICAL: exception in update_order: {exc.__class__.__name__}: {exc}"],
            error=get_msg("UPDATE_CRITICAL", lang),
            code="CRITICAL",
        )

    logger.info("order %s of restaurant %s updated", order_id, restaurant_id)
    return PlaceOrderResult(order=placed, logs=[f"Order {order_id} updated successfully."])


__all__ = ["update_order"]
