# routes_metrics.py

"""Prometheus metrics and /metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

http_requests_total = Counter(
    "http_requests_total", "Total HTTP requests", ["path", "method", "status"]
)

orders_placed_total = Counter("orders_placed_total", "Total orders placed")
orders_placed_total.inc(0)

orders_rejected_total = Counter(
    "orders_rejected_total", "Orders rejected before any write", ["reason"]
)

orders_replayed_total = Counter(
    "orders_replayed_total", "Order submissions answered from an idempotency key"
)
orders_replayed_total.inc(0)

orders_failed_total = Counter(
    "orders_failed_total", "Order placements that failed with a critical error"
)
orders_failed_total.inc(0)

point_cards_redeemed_total = Counter(
    "point_cards_redeemed_total", "Total point cards redeemed"
)
point_cards_redeemed_total.inc(0)

point_card_redeem_failures_total = Counter(
    "point_card_redeem_failures_total", "Failed point card redemptions", ["reason"]
)

txn_retries_total = Counter(
    "txn_retries_total", "Store transactions retried after a conflict"
)
txn_retries_total.inc(0)

rate_limited_total = Counter(
    "rate_limited_total", "Requests rejected by the rate limiter", ["bucket"]
)

rate_limit_errors_total = Counter(
    "rate_limit_errors_total",
    "Requests let through because the rate limiter store was unreachable",
    ["bucket"],
)

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
