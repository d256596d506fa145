import asyncio
from datetime import datetime, timezone

import pytest

from tablepoints.app.errors import (
    InvalidPointCardBatch,
    PointCardAlreadyUsed,
    PointCardInUse,
    PointCardNotFound,
    RestaurantNotFound,
)
from tablepoints.app.models import PointCard, Restaurant
from tablepoints.app.repos_sqlalchemy import logs_repo_sql
from tablepoints.app.services import point_cards

from .factories import NOON

pytestmark = pytest.mark.anyio


async def _add_card(sessionmaker, card_id="c1", points=500):
    async with sessionmaker() as session:
        async with session.begin():
            session.add(PointCard(id=card_id, points=points, created_at=NOON))


async def _points(sessionmaker, restaurant_id):
    async with sessionmaker() as session:
        return (await session.get(Restaurant, restaurant_id)).points


async def test_card_can_only_be_redeemed_once(sessionmaker, make_restaurant):
    r1 = await make_restaurant(name="r1", points=10)
    r2 = await make_restaurant(name="r2", points=10)
    await _add_card(sessionmaker)

    log = await point_cards.redeem_point_card(
        "c1", r1.id, sessionmaker=sessionmaker, now=NOON
    )
    with pytest.raises(PointCardAlreadyUsed) as excinfo:
        await point_cards.redeem_point_card("c1", r2.id, sessionmaker=sessionmaker)

    assert log.points_added == 500
    assert log.restaurant_id == r1.id
    assert excinfo.value.used_by == r1.id
    assert r1.id in str(excinfo.value)
    assert excinfo.value.used_at == NOON
    assert excinfo.value.used_at.tzinfo is not None
    assert NOON.isoformat() in str(excinfo.value)
    assert await _points(sessionmaker, r1.id) == 510
    assert await _points(sessionmaker, r2.id) == 10
    async with sessionmaker() as session:
        card = await session.get(PointCard, "c1")
        assert card.status == "used"
        assert card.used_by == r1.id
        logs = await logs_repo_sql.get_recharge_logs(session, r1.id)
    assert [entry.card_id for entry in logs] == ["c1"]


async def test_concurrent_redemptions_have_one_winner(sessionmaker, make_restaurant):
    restaurants = [await make_restaurant(name=f"r{i}", points=0) for i in range(4)]
    await _add_card(sessionmaker, points=200)

    results = await asyncio.gather(
        *(
            point_cards.redeem_point_card("c1", r.id, sessionmaker=sessionmaker)
            for r in restaurants
        ),
        return_exceptions=True,
    )

    winners = [res for res in results if not isinstance(res, Exception)]
    losers = [res for res in results if isinstance(res, Exception)]
    assert len(winners) == 1
    assert all(isinstance(exc, PointCardAlreadyUsed) for exc in losers)
    balances = [await _points(sessionmaker, r.id) for r in restaurants]
    assert sorted(balances) == [0, 0, 0, 200]
    assert all(exc.used_by == winners[0].restaurant_id for exc in losers)


async def test_unknown_card(sessionmaker, make_restaurant):
    r = await make_restaurant()
    with pytest.raises(PointCardNotFound):
        await point_cards.redeem_point_card("nope", r.id, sessionmaker=sessionmaker)


async def test_unknown_restaurant_leaves_card_unused(sessionmaker):
    await _add_card(sessionmaker)
    with pytest.raises(RestaurantNotFound):
        await point_cards.redeem_point_card("c1", "ghost", sessionmaker=sessionmaker)

    async with sessionmaker() as session:
        assert (await session.get(PointCard, "c1")).status == "new"


async def test_create_point_cards_batch(sessionmaker):
    cards = await point_cards.create_point_cards(3, 100, sessionmaker=sessionmaker, now=NOON)

    assert len({card.id for card in cards}) == 3
    assert all(card.status == "new" and card.points == 100 for card in cards)
    listed = await point_cards.list_point_cards(sessionmaker=sessionmaker)
    assert {card.id for card in listed} == {card.id for card in cards}


@pytest.mark.parametrize("amount,points", [(0, 10), (1, 0), (-1, 10), (501, 10)])
async def test_create_point_cards_rejects_bad_batches(sessionmaker, amount, points):
    with pytest.raises(InvalidPointCardBatch):
        await point_cards.create_point_cards(amount, points, sessionmaker=sessionmaker)


async def test_delete_only_unused_cards(sessionmaker, make_restaurant):
    r = await make_restaurant()
    await _add_card(sessionmaker, "used")
    await _add_card(sessionmaker, "fresh")
    await point_cards.redeem_point_card("used", r.id, sessionmaker=sessionmaker)

    with pytest.raises(PointCardInUse):
        await point_cards.delete_point_card("used", sessionmaker=sessionmaker)
    await point_cards.delete_point_card("fresh", sessionmaker=sessionmaker)
    with pytest.raises(PointCardNotFound):
        await point_cards.delete_point_card("fresh", sessionmaker=sessionmaker)

    used = await point_cards.list_used_point_cards(sessionmaker=sessionmaker)
    assert [card.id for card in used] == ["used"]
    assert await point_cards.list_point_cards(sessionmaker=sessionmaker) == []


async def test_used_cards_are_listed_newest_first(sessionmaker, make_restaurant):
    r = await make_restaurant()
    await _add_card(sessionmaker, "a")
    await _add_card(sessionmaker, "b")
    await point_cards.redeem_point_card(
        "a", r.id, sessionmaker=sessionmaker, now=datetime(2024, 5, 1, tzinfo=timezone.utc)
    )
    await point_cards.redeem_point_card(
        "b", r.id, sessionmaker=sessionmaker, now=datetime(2024, 5, 2, tzinfo=timezone.utc)
    )

    used = await point_cards.list_used_point_cards(sessionmaker=sessionmaker)
    assert [card.id for card in used] == ["b", "a"]
