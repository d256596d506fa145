"""Rate limiting middleware for order placement and point card redemption."""

from __future__ import annotations

import logging
import re

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..routes_metrics import rate_limit_errors_total, rate_limited_total
from ..security import ratelimit
from ..utils import ratelimits
from ..utils.responses import rate_limited

logger = logging.getLogger(__name__)

_BUCKETS = (
    (re.compile(r"^/api/restaurants/[^/]+/orders$"), "place_order", ratelimits.place_order),
    (
        re.compile(r"^/api/restaurants/[^/]+/point-cards/redeem$"),
        "redeem_point_card",
        ratelimits.redeem_point_card,
    ),
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply shared fixed-window limits to POSTs that touch the points ledger.

    The limiter fails open: when Redis is unreachable the request is let
    through so an outage of the counter store never blocks ordering.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST":
            return await call_next(request)
        for pattern, bucket, policy_fn in _BUCKETS:
            if pattern.match(request.url.path):
                break
        else:
            return await call_next(request)

        ip = request.client.host if request.client else "unknown"
        policy = policy_fn()
        try:
            decision = await ratelimit.allow(
                request.app.state.redis,
                ip,
                bucket,
                rate_per_min=policy.rate_per_min,
                burst=policy.burst,
            )
        except RedisError as exc:
            rate_limit_errors_total.labels(bucket=bucket).inc()
            logger.warning(
                "rate limiter unavailable for %s, letting request through: %s", bucket, exc
            )
            return await call_next(request)

        if not decision.allowed:
            rate_limited_total.labels(bucket=bucket).inc()
            return rate_limited(decision.retry_after)
        return await call_next(request)
