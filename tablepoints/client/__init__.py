"""Front-of-house client for the ordering API with an offline outbox."""

from .order_surface import OrderSurfaceClient, RedeemFailed, SubmitOutcome
from .outbox import OrderOutbox, OutboxStatus, UnsyncedOrder

__all__ = [
    "OrderOutbox",
    "OrderSurfaceClient",
    "OutboxStatus",
    "RedeemFailed",
    "SubmitOutcome",
    "UnsyncedOrder",
]
