"""Point card status enumeration and allowed transitions."""

from __future__ import annotations

from enum import Enum


class PointCardStatus(str, Enum):
    """Enumerate the lifecycle states for a point card."""

    NEW = "new"
    USED = "used"


TRANSITIONS: dict[PointCardStatus, list[PointCardStatus]] = {
    PointCardStatus.NEW: [PointCardStatus.USED],
    PointCardStatus.USED: [],
}


def can_transition(src: PointCardStatus, dst: PointCardStatus) -> bool:
    """Return ``True`` if a card can move from ``src`` to ``dst``."""

    return dst in TRANSITIONS.get(src, [])
