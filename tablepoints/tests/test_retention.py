import importlib.util
from datetime import timedelta
from pathlib import Path

import pytest
from sqlalchemy import func, select

from tablepoints.app.models import DishOrderLog, Order, PointLog
from tablepoints.app.schemas import PlaceOrderInput
from tablepoints.app.services.order_placement import place_order
from tablepoints.app.services.retention import purge_expired

from .factories import NOON, TEA, order_payload

pytestmark = pytest.mark.anyio


async def _counts(sessionmaker):
    async with sessionmaker() as session:
        return [
            await session.scalar(select(func.count()).select_from(model))
            for model in (Order, PointLog, DishOrderLog)
        ]


async def test_sweep_removes_only_expired_rows(sessionmaker, resolver, make_restaurant):
    r = await make_restaurant(points=5)
    await place_order(
        PlaceOrderInput.model_validate(order_payload(r.id, (TEA, 1))),
        sessionmaker=sessionmaker,
        resolver=resolver,
        now=NOON,
    )

    async with sessionmaker() as session:
        removed = await purge_expired(session, NOON + timedelta(days=29))
    assert removed == {"orders": 0, "point_logs": 0, "dish_order_logs": 0}
    assert await _counts(sessionmaker) == [1, 1, 1]

    async with sessionmaker() as session:
        removed = await purge_expired(session, NOON + timedelta(days=31))
    assert removed == {"orders": 1, "point_logs": 0, "dish_order_logs": 1}
    assert await _counts(sessionmaker) == [0, 1, 0]

    async with sessionmaker() as session:
        await purge_expired(session, NOON + timedelta(days=91))
    assert await _counts(sessionmaker) == [0, 0, 0]


async def test_retention_script_uses_configured_database(tmp_path, make_restaurant):
    spec = importlib.util.spec_from_file_location(
        "retention_sweep",
        Path(__file__).resolve().parents[2] / "scripts" / "retention_sweep.py",
    )
    retention_sweep = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(retention_sweep)

    removed = await retention_sweep.sweep(
        f"sqlite+aiosqlite:///{tmp_path / 'tablepoints.db'}", NOON
    )

    assert removed == {"orders": 0, "point_logs": 0, "dish_order_logs": 0}
