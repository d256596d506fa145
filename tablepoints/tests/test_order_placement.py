import asyncio
from datetime import datetime, timezone

import pytest

from tablepoints.app.schemas import PlaceOrderInput
from tablepoints.app.services import order_placement
from tablepoints.app.services.order_placement import place_order

from .factories import DUMPLINGS, NOON, TEA, ledger_state, order_payload

pytestmark = pytest.mark.anyio


async def _place(sessionmaker, resolver, data, now=NOON, lang=None):
    return await place_order(
        PlaceOrderInput.model_validate(data),
        sessionmaker=sessionmaker,
        resolver=resolver,
        now=now,
        lang=lang,
    )


async def test_successful_order_writes_every_ledger(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=5)
    data = order_payload(r.id, (DUMPLINGS, 2), (TEA, 1), (DUMPLINGS, 1))

    result = await _place(sessionmaker, resolver, data)

    assert result.code is None
    assert result.order.restaurant_id == r.id
    assert result.order.placed_at == NOON
    assert len(result.order.order) == 3
    assert f"restaurant-{r.id}" in result.invalidate
    assert f"dishOrderLogs-{r.id}" in result.invalidate
    points, orders, point_logs, dish_logs = await ledger_state(sessionmaker, r.id)
    assert points == 4
    assert orders == 1
    assert point_logs == {"2024-05-01": 1}
    assert dish_logs == {("2024-05-01", "d1"): 3, ("2024-05-01", "d2"): 1}


async def test_second_order_increments_existing_logs(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=5)
    await _place(sessionmaker, resolver, order_payload(r.id, (DUMPLINGS, 1)))
    await _place(sessionmaker, resolver, order_payload(r.id, (DUMPLINGS, 4), (TEA, 2)))

    points, orders, point_logs, dish_logs = await ledger_state(sessionmaker, r.id)
    assert points == 3
    assert orders == 2
    assert point_logs == {"2024-05-01": 2}
    assert dish_logs == {("2024-05-01", "d1"): 5, ("2024-05-01", "d2"): 2}


async def test_log_date_uses_business_timezone(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=5)
    # 17:00 UTC on May 1 is 01:00 on May 2 in Shanghai.
    late = datetime(2024, 5, 1, 17, 0, tzinfo=timezone.utc)
    result = await _place(sessionmaker, resolver, order_payload(r.id, (TEA, 1)), now=late)

    assert result.code is None
    _, _, point_logs, _ = await ledger_state(sessionmaker, r.id)
    assert point_logs == {"2024-05-02": 1}


async def test_missing_restaurant_id_is_rejected_without_transaction(sessionmaker, resolver):
    result = await _place(sessionmaker, resolver, order_payload("", (TEA, 1)))

    assert result.order is None
    assert result.code == "MISSING_RESTAURANT"


async def test_empty_cart_is_rejected(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=5)
    result = await _place(sessionmaker, resolver, order_payload(r.id))

    assert result.code == "EMPTY_CART"
    points, orders, _, _ = await ledger_state(sessionmaker, r.id)
    assert (points, orders) == (5, 0)


async def test_unknown_restaurant_is_critical(sessionmaker, resolver):
    result = await _place(sessionmaker, resolver, order_payload("nope", (TEA, 1)))

    assert result.is_critical
    assert result.order is None
    assert any("RestaurantNotFound" in line for line in result.logs)


async def test_insufficient_points(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=0)
    result = await _place(sessionmaker, resolver, order_payload(r.id, (TEA, 1)))

    assert result.code == "INSUFFICIENT_POINTS"
    assert result.error == "点数不足，请联系管理员充值。"
    points, orders, point_logs, dish_logs = await ledger_state(sessionmaker, r.id)
    assert (points, orders, point_logs, dish_logs) == (0, 0, {}, {})


async def test_messages_follow_requested_language(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=0)
    result = await _place(sessionmaker, resolver, order_payload(r.id, (TEA, 1)), lang="en")

    assert result.code == "INSUFFICIENT_POINTS"
    assert "points" in result.error.lower()


@pytest.mark.parametrize("points", [0, 5])
async def test_manual_closure_rejects_regardless_of_balance(
    sessionmaker, resolver, make_restaurant, points
):
    r = await make_restaurant(
        points=points,
        is_restaurant_closed=True,
        auto_close_start_time="00:00",
        auto_close_end_time="00:00",
    )
    result = await _place(sessionmaker, resolver, order_payload(r.id, (TEA, 1)))

    assert result.order is None
    assert result.code in {"RESTAURANT_CLOSED", "INSUFFICIENT_POINTS"}
    if points:
        assert result.code == "RESTAURANT_CLOSED"
    remaining, orders, _, _ = await ledger_state(sessionmaker, r.id)
    assert (remaining, orders) == (points, 0)


async def test_online_ordering_disabled(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=5, is_online_ordering_disabled=True)
    result = await _place(sessionmaker, resolver, order_payload(r.id, (TEA, 1)))

    assert result.code == "ONLINE_ORDERING_DISABLED"


async def test_auto_close_window_rejects_with_both_times(
    sessionmaker, resolver, make_restaurant
):
    r = await make_restaurant(
        points=5, auto_close_start_time="01:00", auto_close_end_time="07:30"
    )
    # 03:15 in Shanghai.
    at = datetime(2024, 4, 30, 19, 15, tzinfo=timezone.utc)
    result = await _place(sessionmaker, resolver, order_payload(r.id, (TEA, 1)), now=at)

    assert result.code == "AUTO_CLOSED"
    assert "01:00" in result.error
    assert "07:30" in result.error
    points, orders, _, _ = await ledger_state(sessionmaker, r.id)
    assert (points, orders) == (5, 0)


async def test_auto_close_uses_restaurant_timezone(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(
        points=5,
        timezone="UTC",
        auto_close_start_time="01:00",
        auto_close_end_time="07:30",
    )
    # 03:15 UTC is 11:15 in Shanghai but the restaurant runs on UTC.
    at = datetime(2024, 5, 1, 3, 15, tzinfo=timezone.utc)
    result = await _place(sessionmaker, resolver, order_payload(r.id, (TEA, 1)), now=at)

    assert result.code == "AUTO_CLOSED"


async def test_two_simultaneous_orders_with_one_point(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=1)
    results = await asyncio.gather(
        _place(sessionmaker, resolver, order_payload(r.id, (TEA, 1), table="T1")),
        _place(sessionmaker, resolver, order_payload(r.id, (DUMPLINGS, 1), table="T2")),
    )

    placed = [res for res in results if res.order is not None]
    rejected = [res for res in results if res.order is None]
    assert len(placed) == 1
    assert len(rejected) == 1
    assert rejected[0].error.startswith("点数不足")
    points, orders, point_logs, _ = await ledger_state(sessionmaker, r.id)
    assert (points, orders, point_logs) == (0, 1, {"2024-05-01": 1})


async def test_concurrent_orders_never_overdraw(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=3)
    results = await asyncio.gather(
        *(
            _place(sessionmaker, resolver, order_payload(r.id, (TEA, 1), table=f"T{i}"))
            for i in range(8)
        )
    )

    placed = [res for res in results if res.order is not None]
    assert len(placed) == 3
    assert {res.code for res in results if res.order is None} == {"INSUFFICIENT_POINTS"}
    points, orders, point_logs, dish_logs = await ledger_state(sessionmaker, r.id)
    assert points == 0
    assert orders == 3
    assert point_logs == {"2024-05-01": 3}
    assert dish_logs == {("2024-05-01", "d2"): 3}


async def test_failure_mid_transaction_leaves_no_trace(
    sessionmaker, resolver, make_restaurant, monkeypatch
):
    r = await make_restaurant(points=5)
    before = await ledger_state(sessionmaker, r.id)

    async def _boom(*args, **kwargs):
        raise RuntimeError("dish log write failed")

    monkeypatch.setattr(order_placement, "_book_dish_logs", _boom)
    result = await _place(sessionmaker, resolver, order_payload(r.id, (TEA, 2)))

    assert result.is_critical
    assert result.order is None
    assert result.invalidate == []
    assert await ledger_state(sessionmaker, r.id) == before


async def test_idempotent_replay_does_not_charge_twice(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=5)
    data = order_payload(r.id, (DUMPLINGS, 1), key="attempt-1")

    first = await _place(sessionmaker, resolver, data)
    second = await _place(sessionmaker, resolver, data)

    assert first.code is None and second.code is None
    assert first.order.id == second.order.id
    assert second.invalidate == []
    points, orders, point_logs, _ = await ledger_state(sessionmaker, r.id)
    assert (points, orders, point_logs) == (4, 1, {"2024-05-01": 1})


async def test_idempotency_keys_are_scoped_per_restaurant(
    sessionmaker, resolver, make_restaurant
):
    a = await make_restaurant(name="A", points=5)
    b = await make_restaurant(name="B", points=5)

    ra = await _place(sessionmaker, resolver, order_payload(a.id, (TEA, 1), key="same"))
    rb = await _place(sessionmaker, resolver, order_payload(b.id, (TEA, 1), key="same"))

    assert ra.order.id != rb.order.id
    assert (await ledger_state(sessionmaker, a.id))[0] == 4
    assert (await ledger_state(sessionmaker, b.id))[0] == 4
