"""Pydantic models exchanged at the API and store boundaries.

Rows read from the database are parsed into these models before use so a
malformed stored payload surfaces as a :class:`pydantic.ValidationError`
instead of leaking into business logic. Field names are camelCase on the
wire.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .domain import PointCardStatus

HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Dish(CamelModel):
    """Snapshot of a menu dish copied into an order line."""

    id: str = Field(min_length=1)
    name: str
    price: float = Field(ge=0)
    category: str = ""
    sort_order: int = 0
    is_recommended: bool = False


class OrderItem(CamelModel):
    dish: Dish
    quantity: int = Field(gt=0)


class PlaceOrderInput(CamelModel):
    """Order payload built by the ordering surface."""

    restaurant_id: str = ""
    table_id: str
    table_number: str
    order: List[OrderItem]
    total: float = Field(ge=0)
    idempotency_key: Optional[str] = Field(default=None, max_length=128)


class PlacedOrder(CamelModel):
    id: str
    restaurant_id: str
    table_id: str
    table_number: str
    order: List[OrderItem]
    total: float
    placed_at: UtcDatetime


class PlaceOrderResult(CamelModel):
    """Outcome of placing or updating an order.

    ``code`` is ``None`` on success, a rejection code for validation
    failures, or ``CRITICAL`` for infrastructure failures. ``invalidate``
    lists the cache tags a caller should drop after a successful write.
    """

    order: Optional[PlacedOrder] = None
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    code: Optional[str] = None
    invalidate: List[str] = Field(default_factory=list)

    @property
    def is_critical(self) -> bool:
        return self.code == "CRITICAL"


class FeatureVisibility(CamelModel):
    menu_management: bool = True
    category_sort: bool = True
    general_settings: bool = True
    point_card_recharge: bool = True
    security_settings: bool = True


class AppSettings(CamelModel):
    """Per-restaurant admission policy and display configuration."""

    is_restaurant_closed: bool = False
    is_online_ordering_disabled: bool = False
    auto_close_start_time: str = Field(default="02:00", pattern=HHMM)
    auto_close_end_time: str = Field(default="06:00", pattern=HHMM)
    table_count: int = Field(default=20, ge=1)
    kitchen_display_password: str = ""
    order_fetch_mode: Literal["push", "pull"] = "push"
    order_pull_interval_seconds: int = Field(default=10, ge=2)
    sync_order_count: int = Field(default=50, ge=1)
    category_order: List[str] = Field(default_factory=list)
    show_kitchen_layout_switch: bool = True
    feature_visibility: FeatureVisibility = Field(default_factory=FeatureVisibility)
    admin_username: str = "admin"
    admin_password: str = "admin"
    place_order_op_code: str = ""


class AppSettingsUpdate(CamelModel):
    """Partial settings patch; omitted fields are left untouched."""

    is_restaurant_closed: Optional[bool] = None
    is_online_ordering_disabled: Optional[bool] = None
    auto_close_start_time: Optional[str] = Field(default=None, pattern=HHMM)
    auto_close_end_time: Optional[str] = Field(default=None, pattern=HHMM)
    table_count: Optional[int] = Field(default=None, ge=1)
    kitchen_display_password: Optional[str] = None
    order_fetch_mode: Optional[Literal["push", "pull"]] = None
    order_pull_interval_seconds: Optional[int] = Field(default=None, ge=2)
    sync_order_count: Optional[int] = Field(default=None, ge=1)
    category_order: Optional[List[str]] = None
    show_kitchen_layout_switch: Optional[bool] = None
    feature_visibility: Optional[FeatureVisibility] = None
    admin_username: Optional[str] = None
    admin_password: Optional[str] = Field(default=None, min_length=6)
    place_order_op_code: Optional[str] = None


class Restaurant(CamelModel):
    id: str
    name: str
    created_at: UtcDatetime
    points: int
    timezone: Optional[str] = None


class PointLog(CamelModel):
    date: str
    count: int


class DishOrderLog(CamelModel):
    date: str
    counts: Dict[str, int]


class PointCard(CamelModel):
    id: str
    points: int = Field(gt=0)
    created_at: UtcDatetime
    status: PointCardStatus
    used_by: Optional[str] = None
    used_at: Optional[UtcDatetime] = None


class RechargeLog(CamelModel):
    id: str
    card_id: str
    points_added: int
    recharged_at: UtcDatetime
    restaurant_id: str


__all__ = [
    "AppSettings",
    "AppSettingsUpdate",
    "CamelModel",
    "Dish",
    "DishOrderLog",
    "FeatureVisibility",
    "OrderItem",
    "PlaceOrderInput",
    "PlaceOrderResult",
    "PlacedOrder",
    "PointCard",
    "PointLog",
    "RechargeLog",
    "Restaurant",
]
