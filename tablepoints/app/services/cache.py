"""Tag-addressed Redis cache entries.

Writers report which tags they made stale (see
:attr:`~tablepoints.app.schemas.PlaceOrderResult.invalidate`); the HTTP layer
passes them to :func:`invalidate`.
"""

from __future__ import annotations

import logging
from typing import Iterable

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

CACHE_PREFIX = "cache:"
RESTAURANTS_TAG = "restaurants"
POINT_CARDS_TAG = "pointCards"


def cache_key(tag: str) -> str:
    return f"{CACHE_PREFIX}{tag}"


def restaurant_tag(restaurant_id: str) -> str:
    return f"restaurant-{restaurant_id}"


def settings_tag(restaurant_id: str) -> str:
    return f"settings-{restaurant_id}"


def point_logs_tag(restaurant_id: str) -> str:
    return f"pointLogs-{restaurant_id}"


def dish_order_logs_tag(restaurant_id: str) -> str:
    return f"dishOrderLogs-{restaurant_id}"


def recharge_logs_tag(restaurant_id: str) -> str:
    return f"rechargeLogs-{restaurant_id}"


def order_placed_tags(restaurant_id: str) -> list[str]:
    """Tags made stale by a successful order placement."""

    return [
        restaurant_tag(restaurant_id),
        RESTAURANTS_TAG,
        point_logs_tag(restaurant_id),
        dish_order_logs_tag(restaurant_id),
    ]


def card_redeemed_tags(restaurant_id: str) -> list[str]:
    """Tags made stale by a successful point card redemption."""

    return [
        restaurant_tag(restaurant_id),
        RESTAURANTS_TAG,
        recharge_logs_tag(restaurant_id),
        POINT_CARDS_TAG,
    ]


async def invalidate(redis: Redis, tags: Iterable[str]) -> None:
    """Drop cached entries for ``tags``.

    A Redis outage only leaves entries to expire by TTL, so it is logged and
    not raised.
    """

    keys = [cache_key(tag) for tag in tags]
    if not keys:
        return
    try:
        await redis.delete(*keys)
    except RedisError as exc:
        logger.warning("cache invalidation failed for %s: %s", keys, exc)
