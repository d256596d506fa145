"""Point card issuance, redemption and deletion.

A card moves ``new -> used`` exactly once. The move is a conditional update
on ``status`` inside the same transaction that credits the restaurant and
writes the recharge log, so concurrent redemptions of one code produce a
single winner and every loser sees :class:`PointCardAlreadyUsed`.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import get_settings

from ..db.transaction import run_transaction
from ..domain import PointCardStatus, can_transition
from ..errors import (
    InvalidPointCardBatch,
    PointCardAlreadyUsed,
    PointCardError,
    PointCardInUse,
    PointCardNotFound,
    RestaurantNotFound,
)
from ..models import PointCard, RechargeLog, Restaurant, new_id
from ..routes_metrics import point_card_redeem_failures_total, point_cards_redeemed_total
from ..schemas import PointCard as PointCardSchema
from ..schemas import RechargeLog as RechargeLogSchema

logger = logging.getLogger(__name__)


def _card_code() -> str:
    return secrets.token_hex(10)


def to_point_card(row: PointCard) -> PointCardSchema:
    return PointCardSchema.model_validate(
        {
            "id": row.id,
            "points": row.points,
            "created_at": row.created_at,
            "status": row.status,
            "used_by": row.used_by,
            "used_at": row.used_at,
        }
    )


async def create_point_cards(
    amount: int,
    points: int,
    *,
    sessionmaker: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
) -> List[PointCardSchema]:
    """Issue ``amount`` new cards worth ``points`` each in one transaction."""

    limit = get_settings().point_card_batch_limit
    if amount <= 0 or points <= 0 or amount > limit:
        raise InvalidPointCardBatch(limit)
    now = now or datetime.now(timezone.utc)
    rows = [
        PointCard(
            id=_card_code(),
            points=points,
            status=PointCardStatus.NEW.value,
            created_at=now,
        )
        for _ in range(amount)
    ]
    async with sessionmaker() as session:
        async with session.begin():
            session.add_all(rows)
    logger.info("issued %d point cards worth %d points", amount, points)
    return [to_point_card(row) for row in rows]


async def redeem_point_card(
    card_id: str,
    restaurant_id: str,
    *,
    sessionmaker: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
    lang: str | None = None,
) -> RechargeLogSchema:
    """Credit ``restaurant_id`` with the value of ``card_id`` and consume the card.

    Raises :class:`PointCardNotFound`, :class:`PointCardAlreadyUsed` (naming
    who used it and when), :class:`RestaurantNotFound`, or
    :class:`~tablepoints.app.errors.TransactionConflict`.
    """

    now = now or datetime.now(timezone.utc)

    async def _redeem(session: AsyncSession) -> RechargeLogSchema:
        card = await session.get(PointCard, card_id)
        if card is None:
            raise PointCardNotFound(card_id, lang=lang)
        if not can_transition(PointCardStatus(card.status), PointCardStatus.USED):
            raise PointCardAlreadyUsed(card_id, card.used_by, card.used_at, lang=lang)
        if await session.get(Restaurant, restaurant_id) is None:
            raise RestaurantNotFound(restaurant_id, lang=lang)

        claimed = await session.execute(
            update(PointCard)
            .where(PointCard.id == card_id, PointCard.status == PointCardStatus.NEW.value)
            .values(status=PointCardStatus.USED.value, used_by=restaurant_id, used_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            # Another redemption committed between our read and our write.
            await session.refresh(card)
            raise PointCardAlreadyUsed(card_id, card.used_by, card.used_at, lang=lang)

        credited = await session.execute(
            update(Restaurant)
            .where(Restaurant.id == restaurant_id)
            .values(points=Restaurant.points + card.points)
            .execution_options(synchronize_session=False)
        )
        if credited.rowcount != 1:
            raise RestaurantNotFound(restaurant_id, lang=lang)

        log = RechargeLog(
            id=new_id(),
            restaurant_id=restaurant_id,
            card_id=card_id,
            points_added=card.points,
            recharged_at=now,
        )
        session.add(log)
        await session.flush()
        return RechargeLogSchema.model_validate(
            {
                "id": log.id,
                "card_id": log.card_id,
                "points_added": log.points_added,
                "recharged_at": log.recharged_at,
                "restaurant_id": log.restaurant_id,
            }
        )

    try:
        recharge = await run_transaction(sessionmaker, _redeem)
    except PointCardError as exc:
        point_card_redeem_failures_total.labels(reason=exc.code).inc()
        logger.warning(
            "point card %s not redeemed for restaurant %s: %s",
            card_id,
            restaurant_id,
            exc.code,
        )
        raise
    except Exception as exc:
        point_card_redeem_failures_total.labels(reason=getattr(exc, "code", "CRITICAL")).inc()
        logger.exception(
            "failed to redeem point card %s for restaurant %s", card_id, restaurant_id
        )
        raise

    point_cards_redeemed_total.inc()
    logger.info(
        "point card %s redeemed by restaurant %s for %d points",
        card_id,
        restaurant_id,
        recharge.points_added,
    )
    return recharge


async def delete_point_card(
    card_id: str,
    *,
    sessionmaker: async_sessionmaker[AsyncSession],
    lang: str | None = None,
) -> None:
    """Delete an unused card; used cards are kept for the audit trail."""

    async with sessionmaker() as session:
        async with session.begin():
            card = await session.get(PointCard, card_id)
            if card is None:
                raise PointCardNotFound(card_id, lang=lang)
            if card.status != PointCardStatus.NEW.value:
                raise PointCardInUse(lang=lang)
            result = await session.execute(
                delete(PointCard).where(
                    PointCard.id == card_id,
                    PointCard.status == PointCardStatus.NEW.value,
                )
            )
            if result.rowcount != 1:
                raise PointCardInUse(lang=lang)
    logger.info("point card %s deleted", card_id)


async def list_point_cards(
    *, sessionmaker: async_sessionmaker[AsyncSession]
) -> List[PointCardSchema]:
    """Return unused cards, newest first."""

    async with sessionmaker() as session:
        result = await session.execute(
            select(PointCard)
            .where(PointCard.status == PointCardStatus.NEW.value)
            .order_by(PointCard.created_at.desc())
        )
        return [to_point_card(row) for row in result.scalars()]


async def list_used_point_cards(
    *, sessionmaker: async_sessionmaker[AsyncSession], limit: int = 50
) -> List[PointCardSchema]:
    """Return the most recently used cards."""

    async with sessionmaker() as session:
        result = await session.execute(
            select(PointCard)
            .where(PointCard.status == PointCardStatus.USED.value)
            .order_by(PointCard.used_at.desc())
            .limit(limit)
        )
        return [to_point_card(row) for row in result.scalars()]


__all__ = [
    "create_point_cards",
    "redeem_point_card",
    "delete_point_card",
    "list_point_cards",
    "list_used_point_cards",
]
