"""Central rate limit policies."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Policy:
    """Rate limit configuration."""

    rate_per_min: float
    burst: int


def _policy(name: str, rate: float, burst: int) -> Policy:
    prefix = f"RL_{name.upper()}"
    rpm = float(os.getenv(f"{prefix}_RPM", rate))
    b = int(os.getenv(f"{prefix}_BURST", burst))
    return Policy(rate_per_min=rpm, burst=b)


def place_order() -> Policy:
    """Limit order submissions per client."""
    return _policy("place_order", 60, 60)


def redeem_point_card() -> Policy:
    """Throttle point card guessing."""
    return _policy("redeem_point_card", 5, 5)


__all__ = ["Policy", "place_order", "redeem_point_card"]
