"""Order placement: admission checks and the points-ledger transaction.

A placement costs exactly one point regardless of the order's size. The
decrement, the new order row, the daily point log and the daily dish-sales
log are written in one transaction; either all of them land or none do.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import get_settings

from ..db.transaction import run_transaction
from ..domain import business_date, business_now, is_within_auto_close_time
from ..errors import OrderRejected, RestaurantNotFound
from ..i18n import get_msg
from ..models import DishOrderLog, Order, PointLog, Restaurant
from ..repos_sqlalchemy import orders_repo_sql
from ..routes_metrics import (
    orders_failed_total,
    orders_placed_total,
    orders_rejected_total,
    orders_replayed_total,
)
from ..schemas import AppSettings, PlaceOrderInput, PlaceOrderResult
from . import cache
from .settings_resolver import SettingsResolver

logger = logging.getLogger(__name__)


def check_admission(
    restaurant: Restaurant,
    settings: AppSettings,
    now: datetime,
    *,
    lang: str | None = None,
) -> None:
    """Raise :class:`OrderRejected` if ``restaurant`` may not take an order now.

    Checks run in a fixed order, balance first and the daily auto-close
    window last; the window is evaluated in the restaurant's business
    timezone.
    """

    if restaurant.points <= 0:
        raise OrderRejected(
            "INSUFFICIENT_POINTS", "Order rejected: insufficient points.", lang=lang
        )
    if settings.is_restaurant_closed:
        raise OrderRejected(
            "RESTAURANT_CLOSED", "Order rejected: restaurant is manually closed.", lang=lang
        )
    if settings.is_online_ordering_disabled:
        raise OrderRejected(
            "ONLINE_ORDERING_DISABLED",
            "Order rejected: online ordering is disabled.",
            lang=lang,
        )
    start, end = settings.auto_close_start_time, settings.auto_close_end_time
    if is_within_auto_close_time(start, end, business_now(now, restaurant.timezone)):
        raise OrderRejected(
            "AUTO_CLOSED",
            "Order rejected: within automatic closing hours.",
            lang=lang,
            start=start,
            end=end,
        )


async def _book_point_log(
    session: AsyncSession,
    restaurant_id: str,
    log_date: str,
    existing: PointLog | None,
    expire_at: datetime,
) -> None:
    if existing is None:
        session.add(
            PointLog(restaurant_id=restaurant_id, date=log_date, count=1, expire_at=expire_at)
        )
        return
    await session.execute(
        update(PointLog)
        .where(PointLog.restaurant_id == restaurant_id, PointLog.date == log_date)
        .values(count=PointLog.count + 1, expire_at=expire_at)
        .execution_options(synchronize_session=False)
    )


async def _book_dish_logs(
    session: AsyncSession,
    restaurant_id: str,
    log_date: str,
    quantities: Counter,
    existing: set[str],
    expire_at: datetime,
) -> None:
    for dish_id, quantity in quantities.items():
        if dish_id not in existing:
            session.add(
                DishOrderLog(
                    restaurant_id=restaurant_id,
                    date=log_date,
                    dish_id=dish_id,
                    quantity=quantity,
                    expire_at=expire_at,
                )
            )
            continue
        await session.execute(
            update(DishOrderLog)
            .where(
                DishOrderLog.restaurant_id == restaurant_id,
                DishOrderLog.date == log_date,
                DishOrderLog.dish_id == dish_id,
            )
            .values(quantity=DishOrderLog.quantity + quantity, expire_at=expire_at)
            .execution_options(synchronize_session=False)
        )


def _rejection(code: str, log: str, lang: str | None, **params: object) -> PlaceOrderResult:
    orders_rejected_total.labels(reason=code).inc()
    return PlaceOrderResult(logs=[log], error=get_msg(code, lang, **params), code=code)


async def place_order(
    payload: PlaceOrderInput,
    *,
    sessionmaker: async_sessionmaker[AsyncSession],
    resolver: SettingsResolver,
    now: datetime | None = None,
    lang: str | None = None,
) -> PlaceOrderResult:
    """Validate and commit a new order.

    Never raises: validation rejections come back with their code and a
    localised message, anything unexpected comes back as ``CRITICAL`` after
    the transaction has rolled back. A repeated ``idempotency_key`` returns
    the stored order without charging again.
    """

    restaurant_id = payload.restaurant_id
    if not restaurant_id:
        return _rejection(
            "MISSING_RESTAURANT", "Order rejected: missing restaurantId.", lang
        )
    if not payload.order:
        return _rejection("EMPTY_CART", "Order rejected: empty cart.", lang)

    now = now or datetime.now(timezone.utc)
    config = get_settings()
    quantities: Counter = Counter()
    for item in payload.order:
        quantities[item.dish.id] += item.quantity
    items = [item.model_dump(mode="json", by_alias=True) for item in payload.order]

    async def _place(session: AsyncSession) -> tuple[PlaceOrderResult, bool]:
        # Reads first: restaurant, idempotency key, today's ledgers.
        restaurant = await session.get(Restaurant, restaurant_id)
        if restaurant is None:
            raise RestaurantNotFound(restaurant_id, lang=lang)

        if payload.idempotency_key:
            previous = await orders_repo_sql.find_by_idempotency_key(
                session, restaurant_id, payload.idempotency_key
            )
            if previous is not None:
                return (
                    PlaceOrderResult(
                        order=orders_repo_sql.to_placed_order(previous),
                        logs=[f"Order {previous.id} already placed for this idempotency key."],
                    ),
                    True,
                )

        check_admission(restaurant, settings, now, lang=lang)

        log_date = business_date(now, restaurant.timezone)
        point_log = await session.get(PointLog, (restaurant_id, log_date))
        logged_dishes = set(
            (
                await session.execute(
                    select(DishOrderLog.dish_id).where(
                        DishOrderLog.restaurant_id == restaurant_id,
                        DishOrderLog.date == log_date,
                        DishOrderLog.dish_id.in_(list(quantities)),
                    )
                )
            ).scalars()
        )

        # Writes. The guarded decrement goes first so a lost race leaves
        # nothing else to undo.
        charged = await session.execute(
            update(Restaurant)
            .where(Restaurant.id == restaurant_id, Restaurant.points > 0)
            .values(points=Restaurant.points - 1)
            .execution_options(synchronize_session=False)
        )
        if charged.rowcount != 1:
            raise OrderRejected(
                "INSUFFICIENT_POINTS", "Order rejected: insufficient points.", lang=lang
            )

        order = Order(
            restaurant_id=restaurant_id,
            table_id=payload.table_id,
            table_number=payload.table_number,
            items=items,
            total=payload.total,
            idempotency_key=payload.idempotency_key,
            placed_at=now,
            expire_at=now + timedelta(days=config.order_retention_days),
        )
        session.add(order)
        await _book_point_log(
            session,
            restaurant_id,
            log_date,
            point_log,
            now + timedelta(days=config.point_log_retention_days),
        )
        await _book_dish_logs(
            session,
            restaurant_id,
            log_date,
            quantities,
            logged_dishes,
            now + timedelta(days=config.dish_log_retention_days),
        )
        await session.flush()
        placed = orders_repo_sql.to_placed_order(order)
        return PlaceOrderResult(order=placed, logs=["Order placed successfully."]), False

    try:
        # Settings are read outside the transaction's read set.
        settings = await resolver.get(restaurant_id)
        result, replayed = await run_transaction(sessionmaker, _place)
    except OrderRejected as exc:
        orders_rejected_total.labels(reason=exc.code).inc()
        logger.info("order rejected for restaurant %s: %s", restaurant_id, exc.code)
        return PlaceOrderResult(logs=[exc.log], error=exc.message, code=exc.code)
    except Exception as exc:
        orders_failed_total.inc()
        logger.exception("place_order failed for restaurant %s", restaurant_id)
        return PlaceOrderResult(
            logs=[f"CRITICAL: exception in place_order: {exc.__class__.__name__}: {exc}"],
            error=get_msg("CRITICAL", lang),
            code="CRITICAL",
        )

    if replayed:
        orders_replayed_total.inc()
        logger.info(
            "replayed order %s for restaurant %s", result.order.id, restaurant_id
        )
        return result

    orders_placed_total.inc()
    logger.info(
        "order %s placed for restaurant %s table %s",
        result.order.id,
        restaurant_id,
        payload.table_number,
    )
    result.invalidate = cache.order_placed_tags(restaurant_id)
    return result


__all__ = ["check_admission", "place_order"]
