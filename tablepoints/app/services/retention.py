"""Expiry sweep for rows carrying an ``expire_at`` timestamp.

The store has no native TTL, so orders and the daily ledgers are purged by
this sweep once their ``expire_at`` has passed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import DishOrderLog, Order, PointLog

logger = logging.getLogger(__name__)

EXPIRING = {"orders": Order, "point_logs": PointLog, "dish_order_logs": DishOrderLog}


async def purge_expired(session: AsyncSession, now: datetime | None = None) -> Dict[str, int]:
    """Delete expired rows and return the number removed per table."""

    now = now or datetime.now(timezone.utc)
    removed: Dict[str, int] = {}
    for name, model in EXPIRING.items():
        result = await session.execute(delete(model).where(model.expire_at < now))
        removed[name] = result.rowcount or 0
    await session.commit()
    logger.info("retention sweep removed %s", removed)
    return removed
