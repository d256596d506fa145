"""Domain models and helpers."""

from .hours import (
    business_date,
    business_now,
    is_within_auto_close_time,
    resolve_timezone,
)
from .point_card_status import TRANSITIONS, PointCardStatus, can_transition

__all__ = [
    "PointCardStatus",
    "TRANSITIONS",
    "can_transition",
    "business_date",
    "business_now",
    "is_within_auto_close_time",
    "resolve_timezone",
]
