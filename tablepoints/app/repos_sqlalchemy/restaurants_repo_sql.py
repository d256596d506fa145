"""SQLAlchemy-backed repository helpers for restaurants.

None of these helpers change ``points`` after creation; balance changes go
through the placement and redemption services only.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List

from pydantic import ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import InvalidRestaurantName
from ..models import (
    DishOrderLog,
    Order,
    PointLog,
    RechargeLog,
    Restaurant,
    RestaurantSettings,
    utcnow,
)
from ..schemas import Restaurant as RestaurantSchema
from . import settings_repo_sql

logger = logging.getLogger(__name__)

# Tables holding per-restaurant rows, excluding settings and the restaurant.
_CHILD_TABLES = (Order, PointLog, DishOrderLog, RechargeLog)


def to_restaurant(row: Restaurant) -> RestaurantSchema:
    return RestaurantSchema.model_validate(
        {
            "id": row.id,
            "name": row.name,
            "created_at": row.created_at,
            "points": row.points,
            "timezone": row.timezone,
        }
    )


async def add_restaurant(
    session: AsyncSession,
    name: str,
    *,
    points: int,
    timezone: str | None = None,
    now: datetime | None = None,
) -> RestaurantSchema:
    """Create a restaurant with ``points`` opening balance and default settings."""

    name = name.strip()
    if not name:
        raise InvalidRestaurantName()
    row = Restaurant(name=name, points=points, timezone=timezone, created_at=now or utcnow())
    session.add(row)
    await session.flush()
    await settings_repo_sql.reset_settings(session, row.id)
    await session.flush()
    return to_restaurant(row)


async def get_restaurant(session: AsyncSession, restaurant_id: str) -> RestaurantSchema | None:
    if not restaurant_id:
        return None
    row = await session.get(Restaurant, restaurant_id, populate_existing=True)
    if row is None:
        return None
    return to_restaurant(row)


async def list_restaurants(session: AsyncSession) -> List[RestaurantSchema]:
    """Return all restaurants, newest first, skipping malformed rows."""

    result = await session.execute(select(Restaurant).order_by(Restaurant.created_at.desc()))
    restaurants: List[RestaurantSchema] = []
    for row in result.scalars():
        try:
            restaurants.append(to_restaurant(row))
        except ValidationError as exc:
            logger.warning("skipping invalid restaurant %s: %s", row.id, exc)
    return restaurants


async def rename_restaurant(session: AsyncSession, restaurant_id: str, name: str) -> bool:
    name = name.strip()
    if not name:
        raise InvalidRestaurantName()
    result = await session.execute(
        update(Restaurant)
        .where(Restaurant.id == restaurant_id)
        .values(name=name)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def clear_restaurant_data(session: AsyncSession, restaurant_id: str) -> None:
    """Drop orders, logs and recharge history and reset settings to defaults."""

    for model in _CHILD_TABLES:
        await session.execute(delete(model).where(model.restaurant_id == restaurant_id))
    await settings_repo_sql.reset_settings(session, restaurant_id)


async def delete_restaurant(session: AsyncSession, restaurant_id: str) -> bool:
    """Delete a restaurant and every row scoped to it."""

    for model in (*_CHILD_TABLES, RestaurantSettings):
        await session.execute(delete(model).where(model.restaurant_id == restaurant_id))
    result = await session.execute(delete(Restaurant).where(Restaurant.id == restaurant_id))
    return result.rowcount == 1
