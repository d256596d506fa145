import pytest
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY
from redis.exceptions import ConnectionError as RedisConnectionError

from tablepoints.app.main import create_app
from tablepoints.app.security import ratelimit
from tablepoints.app.services.settings_resolver import SettingsResolver

from .factories import TEA, ledger_state, order_payload

pytestmark = pytest.mark.anyio


class _DownRedis:
    def pipeline(self, *args, **kwargs):
        raise RedisConnectionError("down")

    async def incr(self, key):
        raise RedisConnectionError("down")

    async def expire(self, *args, **kwargs):
        raise RedisConnectionError("down")

    async def ttl(self, key):
        raise RedisConnectionError("down")

    async def get(self, key):
        raise RedisConnectionError("down")

    async def set(self, *args, **kwargs):
        raise RedisConnectionError("down")

    async def delete(self, *keys):
        raise RedisConnectionError("down")


def _limiter_errors():
    value = REGISTRY.get_sample_value("rate_limit_errors_total", {"bucket": "place_order"})
    return value or 0.0


def _app(sessionmaker, redis, resolver):
    app = create_app()
    app.state.sessionmaker = sessionmaker
    app.state.redis = redis
    app.state.resolver = resolver
    return app


async def test_allow_counts_within_window(redis):
    decisions = [
        await ratelimit.allow(redis, "1.2.3.4", "k", rate_per_min=60, burst=2)
        for _ in range(3)
    ]

    assert [d.allowed for d in decisions] == [True, True, False]
    assert [d.remaining for d in decisions] == [1, 0, 0]
    assert 0 < decisions[-1].retry_after <= 2
    assert 0 < await redis.ttl(ratelimit.bucket_key("1.2.3.4", "k")) <= 2


async def test_counter_without_expiry_gets_one(redis):
    key = ratelimit.bucket_key("1.2.3.4", "k")
    await redis.set(key, 5)

    decision = await ratelimit.allow(redis, "1.2.3.4", "k", rate_per_min=60, burst=10)

    assert decision.allowed
    assert decision.remaining == 4
    assert decision.retry_after == 10
    assert 0 < await redis.ttl(key) <= 10


async def test_buckets_are_per_ip(redis):
    assert (await ratelimit.allow(redis, "a", "k", burst=1)).allowed
    assert not (await ratelimit.allow(redis, "a", "k", burst=1)).allowed
    assert (await ratelimit.allow(redis, "b", "k", burst=1)).allowed


async def test_order_placement_is_throttled_past_burst(
    monkeypatch, sessionmaker, redis, resolver
):
    monkeypatch.setenv("RL_PLACE_ORDER_BURST", "2")
    transport = ASGITransport(app=_app(sessionmaker, redis, resolver))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        responses = [
            await client.post("/api/restaurants/r1/orders", json={}) for _ in range(3)
        ]
        other = await client.get("/api/restaurants/r1/orders")

    assert [r.status_code for r in responses[:2]] == [422, 422]
    assert responses[2].status_code == 429
    assert responses[2].json()["error"]["code"] == "RATE_LIMIT"
    assert 0 < int(responses[2].headers["Retry-After"]) <= 2
    assert other.status_code == 200


async def test_orders_go_through_when_redis_is_down(sessionmaker, make_restaurant):
    r = await make_restaurant(
        points=2, auto_close_start_time="00:00", auto_close_end_time="00:00"
    )
    down = _DownRedis()
    app = _app(sessionmaker, down, SettingsResolver(sessionmaker, down, ttl=60))
    before = _limiter_errors()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.post(
            f"/api/restaurants/{r.id}/orders", json=order_payload(r.id, (TEA, 1))
        )

    assert resp.status_code == 200
    assert resp.json()["ok"] is True
    points, orders, _, _ = await ledger_state(sessionmaker, r.id)
    assert (points, orders) == (1, 1)
    assert _limiter_errors() == before + 1
