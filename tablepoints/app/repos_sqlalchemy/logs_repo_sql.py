"""Read helpers for the daily point, dish-sales and recharge ledgers."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import DishOrderLog, PointLog, RechargeLog
from ..schemas import DishOrderLog as DishOrderLogSchema
from ..schemas import PointLog as PointLogSchema
from ..schemas import RechargeLog as RechargeLogSchema


async def get_point_logs(
    session: AsyncSession, restaurant_id: str, limit: int = 90
) -> List[PointLogSchema]:
    """Return daily order counts, newest business day first."""

    result = await session.execute(
        select(PointLog)
        .where(PointLog.restaurant_id == restaurant_id)
        .order_by(PointLog.date.desc())
        .limit(limit)
    )
    return [PointLogSchema(date=row.date, count=row.count) for row in result.scalars()]


async def get_dish_order_logs(
    session: AsyncSession, restaurant_id: str
) -> List[DishOrderLogSchema]:
    """Return per-day ``{dish_id: quantity}`` maps, newest day first."""

    result = await session.execute(
        select(DishOrderLog)
        .where(DishOrderLog.restaurant_id == restaurant_id)
        .order_by(DishOrderLog.date.desc(), DishOrderLog.dish_id)
    )
    by_date: Dict[str, Dict[str, int]] = defaultdict(dict)
    for row in result.scalars():
        by_date[row.date][row.dish_id] = row.quantity
    return [DishOrderLogSchema(date=date, counts=counts) for date, counts in by_date.items()]


async def get_recharge_logs(
    session: AsyncSession, restaurant_id: str, limit: int = 50
) -> List[RechargeLogSchema]:
    """Return the newest recharge audit rows for ``restaurant_id``."""

    result = await session.execute(
        select(RechargeLog)
        .where(RechargeLog.restaurant_id == restaurant_id)
        .order_by(RechargeLog.recharged_at.desc())
        .limit(limit)
    )
    return [
        RechargeLogSchema.model_validate(
            {
                "id": row.id,
                "card_id": row.card_id,
                "points_added": row.points_added,
                "recharged_at": row.recharged_at,
                "restaurant_id": row.restaurant_id,
            }
        )
        for row in result.scalars()
    ]
