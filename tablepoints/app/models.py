"""Database models for restaurants, orders and the points ledger.

Per-restaurant collections are tables keyed by ``restaurant_id``. Point
cards are global and not scoped to a restaurant.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

from .domain import PointCardStatus

Base = declarative_base()


def new_id() -> str:
    """Return a random identifier for a new row."""

    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Restaurant(Base):
    """A tenant and its prepaid point balance."""

    __tablename__ = "restaurants"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    # Only written by order placement (-1) and point-card redemption.
    points = Column(Integer, nullable=False, default=0)
    timezone = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class RestaurantSettings(Base):
    """Singleton settings document for a restaurant."""

    __tablename__ = "restaurant_settings"

    restaurant_id = Column(
        String(64), ForeignKey("restaurants.id"), primary_key=True
    )
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Order(Base):
    """An order placed at a table; line items are dish snapshots."""

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint(
            "restaurant_id", "idempotency_key", name="uq_orders_idempotency_key"
        ),
        Index("ix_orders_restaurant_placed", "restaurant_id", "placed_at"),
    )

    id = Column(String(64), primary_key=True, default=new_id)
    restaurant_id = Column(String(64), ForeignKey("restaurants.id"), nullable=False)
    table_id = Column(String, nullable=False)
    table_number = Column(String, nullable=False)
    items = Column(JSON, nullable=False, default=list)
    total = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    idempotency_key = Column(String(128), nullable=True)
    placed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expire_at = Column(DateTime(timezone=True), nullable=False, index=True)


class PointLog(Base):
    """Number of orders placed by a restaurant on one business day."""

    __tablename__ = "point_logs"

    restaurant_id = Column(
        String(64), ForeignKey("restaurants.id"), primary_key=True
    )
    date = Column(String(10), primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    expire_at = Column(DateTime(timezone=True), nullable=False, index=True)


class DishOrderLog(Base):
    """Quantity of one dish sold by a restaurant on one business day."""

    __tablename__ = "dish_order_logs"

    restaurant_id = Column(
        String(64), ForeignKey("restaurants.id"), primary_key=True
    )
    date = Column(String(10), primary_key=True)
    dish_id = Column(String(64), primary_key=True)
    quantity = Column(Integer, nullable=False, default=0)
    expire_at = Column(DateTime(timezone=True), nullable=False, index=True)


class PointCard(Base):
    """Single-use recharge code."""

    __tablename__ = "point_cards"

    id = Column(String(64), primary_key=True)
    points = Column(Integer, nullable=False)
    status = Column(
        String(8), nullable=False, default=PointCardStatus.NEW.value, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    used_by = Column(String(64), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)


class RechargeLog(Base):
    """Append-only audit row for a successful redemption."""

    __tablename__ = "recharge_logs"

    id = Column(String(64), primary_key=True, default=new_id)
    restaurant_id = Column(String(64), ForeignKey("restaurants.id"), nullable=False)
    card_id = Column(String(64), nullable=False)
    points_added = Column(Integer, nullable=False)
    recharged_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


__all__ = [
    "Base",
    "Restaurant",
    "RestaurantSettings",
    "Order",
    "PointLog",
    "DishOrderLog",
    "PointCard",
    "RechargeLog",
    "new_id",
    "utcnow",
]
