"""HTTP client used by the ordering surface at the table or counter.

Order placement falls back to the local :class:`OrderOutbox` when the server
cannot be reached, answers 5xx, or reports a critical failure. Validation
rejections are returned to the caller and never queued: a closed restaurant
must not silently accept an order. Redemption has no fallback.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List

import requests

from .outbox import OrderOutbox

logger = logging.getLogger(__name__)


@dataclass
class SubmitOutcome:
    idempotency_key: str
    order: Dict[str, Any] | None = None
    code: str | None = None
    message: str | None = None
    queued: bool = False

    @property
    def ok(self) -> bool:
        return self.order is not None


class RedeemFailed(Exception):
    """The server refused a point card redemption."""

    def __init__(self, code: str, message: str, status_code: int) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


def _error(resp: requests.Response) -> tuple[str, str]:
    try:
        error = resp.json().get("error") or {}
    except ValueError:
        return str(resp.status_code), resp.text
    return str(error.get("code", resp.status_code)), str(error.get("message", ""))


class OrderSurfaceClient:
    def __init__(
        self,
        base_url: str,
        outbox: OrderOutbox,
        *,
        session: requests.Session | None = None,
        timeout: float = 5,
        lang: str = "zh",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.outbox = outbox
        self.session = session or requests.Session()
        self.timeout = timeout
        self.lang = lang

    def _orders_url(self, restaurant_id: str) -> str:
        return f"{self.base_url}/api/restaurants/{restaurant_id}/orders"

    def _post_order(self, restaurant_id: str, payload: dict, key: str) -> requests.Response:
        return self.session.post(
            self._orders_url(restaurant_id),
            json=payload,
            headers={"Idempotency-Key": key, "Accept-Language": self.lang},
            timeout=self.timeout,
        )

    def submit_order(
        self,
        restaurant_id: str,
        table_id: str,
        table_number: str,
        items: List[Dict[str, Any]],
        total: float,
        *,
        idempotency_key: str | None = None,
    ) -> SubmitOutcome:
        """Send an order; queue it locally if the server is unavailable.

        ``items`` are ``{"dish": {...}, "quantity": n}`` line items.
        """
        key = idempotency_key or uuid.uuid4().hex
        payload = {
            "tableId": table_id,
            "tableNumber": table_number,
            "order": items,
            "total": total,
            "idempotencyKey": key,
        }
        try:
            resp = self._post_order(restaurant_id, payload, key)
        except requests.RequestException as exc:
            return self._queue(restaurant_id, key, payload, f"{exc.__class__.__name__}: {exc}")

        if resp.ok:
            return SubmitOutcome(idempotency_key=key, order=resp.json()["data"]["order"])
        code, message = _error(resp)
        if resp.status_code >= 500 or code == "CRITICAL":
            outcome = self._queue(restaurant_id, key, payload, f"{resp.status_code} {code}")
            outcome.code, outcome.message = code, message
            return outcome
        logger.info("order for restaurant %s rejected: %s", restaurant_id, code)
        return SubmitOutcome(idempotency_key=key, code=code, message=message)

    def _queue(self, restaurant_id: str, key: str, payload: dict, error: str) -> SubmitOutcome:
        self.outbox.append(restaurant_id, key, payload, error)
        logger.warning(
            "queued order %s for restaurant %s after failure: %s", key, restaurant_id, error
        )
        return SubmitOutcome(idempotency_key=key, queued=True, message=error)

    def sync_pending(self) -> Dict[str, int]:
        """Replay queued orders with their original idempotency keys."""
        counts = {"synced": 0, "rejected": 0, "failed": 0}
        for entry in self.outbox.pending():
            try:
                resp = self._post_order(entry.restaurant_id, entry.payload, entry.idempotency_key)
            except requests.RequestException as exc:
                self.outbox.record_failure(entry.id, str(exc))
                counts["failed"] += 1
                continue
            if resp.ok:
                order = resp.json()["data"]["order"]
                self.outbox.mark_synced(entry.id, order["id"])
                counts["synced"] += 1
                continue
            code, message = _error(resp)
            if resp.status_code >= 500 or code == "CRITICAL" or resp.status_code == 429:
                self.outbox.record_failure(entry.id, f"{resp.status_code} {code}")
                counts["failed"] += 1
            else:
                self.outbox.mark_rejected(entry.id, f"{code}: {message}")
                counts["rejected"] += 1
        if any(counts.values()):
            logger.info("outbox sync finished: %s", counts)
        return counts

    def redeem_point_card(self, restaurant_id: str, card_id: str) -> Dict[str, Any]:
        """Redeem ``card_id``; transport errors propagate unchanged."""
        resp = self.session.post(
            f"{self.base_url}/api/restaurants/{restaurant_id}/point-cards/redeem",
            json={"cardId": card_id},
            headers={"Accept-Language": self.lang},
            timeout=self.timeout,
        )
        if not resp.ok:
            code, message = _error(resp)
            raise RedeemFailed(code, message, resp.status_code)
        return resp.json()["data"]
