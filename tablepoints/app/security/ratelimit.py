"""Fixed-window counters for the points-ledger endpoints, kept in Redis.

Every API instance shares one counter per ``(client ip, bucket)`` so a
diner cannot dodge the limit by hitting another worker. The counter and
its remaining lifetime are read in a single pipelined round-trip; a
counter found without an expiry (first hit, or a crash between commands)
is given one, so no key can pin a client forever.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import ceil

from redis.asyncio import Redis


@dataclass(frozen=True)
class Decision:
    allowed: bool
    remaining: int
    retry_after: int


def bucket_key(ip: str, bucket: str) -> str:
    return f"ratelimit:{ip}:{bucket}"


def window_seconds(rate_per_min: float, burst: int) -> int:
    """Length of a window that lets ``burst`` hits through at ``rate_per_min``."""
    return max(1, ceil(burst / rate_per_min * 60))


async def allow(
    redis: Redis,
    ip: str,
    bucket: str,
    rate_per_min: float = 60,
    burst: int = 100,
) -> Decision:
    """Count one hit against ``bucket`` for ``ip`` and decide on it.

    ``retry_after`` is the number of seconds until the window resets;
    ``remaining`` is how many more hits the window will accept. Redis
    errors propagate to the caller.
    """

    key = bucket_key(ip, bucket)
    window = window_seconds(rate_per_min, burst)
    async with redis.pipeline(transaction=True) as pipe:
        pipe.incr(key)
        pipe.ttl(key)
        count, ttl = await pipe.execute()
    if ttl < 0:
        await redis.expire(key, window)
        ttl = window
    return Decision(
        allowed=count <= burst,
        remaining=max(0, burst - count),
        retry_after=int(ttl),
    )
