"""Domain exceptions.

Every error carries a stable ``code`` and an HTTP ``status_code`` so the
routing layer can render it as an error envelope without inspecting types.
"""

from __future__ import annotations

from datetime import datetime

from .i18n import get_msg
from .schemas import _as_utc


class TablePointsError(Exception):
    """Base class for expected, user-facing failures."""

    code = "ERROR"
    status_code = 400

    def __init__(self, message: str | None = None, *, lang: str | None = None) -> None:
        self.message = message or get_msg(self.code, lang)
        super().__init__(self.message)


class OrderRejected(TablePointsError):
    """A validation rejection raised inside the placement transaction.

    Raising it rolls the transaction back; :func:`place_order` converts it
    into a result and never lets it escape.
    """

    status_code = 422

    def __init__(self, code: str, log: str, *, lang: str | None = None, **params: object) -> None:
        self.code = code
        self.log = log
        super().__init__(get_msg(code, lang, **params))


class RestaurantNotFound(TablePointsError):
    code = "RESTAURANT_NOT_FOUND"
    status_code = 404

    def __init__(self, restaurant_id: str, *, lang: str | None = None) -> None:
        self.restaurant_id = restaurant_id
        super().__init__(lang=lang)


class OrderNotFound(TablePointsError):
    code = "ORDER_NOT_FOUND"
    status_code = 404

    def __init__(self, order_id: str, *, lang: str | None = None) -> None:
        self.order_id = order_id
        super().__init__(lang=lang)


class InvalidRestaurantName(TablePointsError):
    code = "INVALID_NAME"
    status_code = 422


class PointCardError(TablePointsError):
    """Base class for point card failures."""


class PointCardNotFound(PointCardError):
    code = "CARD_NOT_FOUND"
    status_code = 404

    def __init__(self, card_id: str, *, lang: str | None = None) -> None:
        self.card_id = card_id
        super().__init__(lang=lang)


class PointCardAlreadyUsed(PointCardError):
    """Raised when redeeming a card that has already been consumed."""

    code = "CARD_ALREADY_USED"
    status_code = 409

    def __init__(
        self,
        card_id: str,
        used_by: str | None,
        used_at: datetime | None,
        *,
        lang: str | None = None,
    ) -> None:
        self.card_id = card_id
        self.used_by = used_by
        self.used_at = _as_utc(used_at) if used_at else None
        when = self.used_at.isoformat() if self.used_at else "?"
        super().__init__(get_msg(self.code, lang, used_by=used_by, used_at=when))


class PointCardInUse(PointCardError):
    """Raised when deleting a card that is no longer ``new``."""

    code = "CARD_IN_USE"
    status_code = 409


class InvalidPointCardBatch(PointCardError):
    code = "INVALID_CARD_BATCH"
    status_code = 422

    def __init__(self, limit: int, *, lang: str | None = None) -> None:
        super().__init__(get_msg(self.code, lang, limit=limit))


class TransactionConflict(TablePointsError):
    """Concurrent transactions kept conflicting until retries ran out."""

    code = "TXN_CONFLICT"
    status_code = 409


__all__ = [
    "TablePointsError",
    "OrderRejected",
    "RestaurantNotFound",
    "OrderNotFound",
    "InvalidRestaurantName",
    "PointCardError",
    "PointCardNotFound",
    "PointCardAlreadyUsed",
    "PointCardInUse",
    "InvalidPointCardBatch",
    "TransactionConflict",
]
