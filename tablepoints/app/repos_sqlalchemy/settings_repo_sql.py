"""Persistence for the per-restaurant settings document."""

from __future__ import annotations

import logging

from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import RestaurantNotFound
from ..models import Restaurant, RestaurantSettings
from ..schemas import AppSettings, AppSettingsUpdate

logger = logging.getLogger(__name__)


def parse_settings(data: dict | None) -> AppSettings:
    """Parse a stored settings document, falling back to defaults per field.

    Top-level fields that fail validation are dropped so one bad value does
    not discard the rest of the document.
    """

    if not data:
        return AppSettings()
    try:
        return AppSettings.model_validate(data)
    except ValidationError as exc:
        bad = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        logger.warning("invalid settings fields %s, using defaults for them", sorted(bad))
        return AppSettings.model_validate(
            {k: v for k, v in data.items() if k not in bad and to_camel(k) not in bad}
        )


def dump_settings(settings: AppSettings) -> dict:
    return settings.model_dump(mode="json", by_alias=True)


async def get_settings(session: AsyncSession, restaurant_id: str) -> AppSettings:
    row = await session.get(RestaurantSettings, restaurant_id)
    if row is None:
        logger.info("settings for restaurant %s not found, using defaults", restaurant_id)
        return AppSettings()
    return parse_settings(row.data)


async def reset_settings(session: AsyncSession, restaurant_id: str) -> AppSettings:
    """Overwrite the settings document with defaults."""

    defaults = AppSettings()
    row = await session.get(RestaurantSettings, restaurant_id)
    if row is None:
        session.add(
            RestaurantSettings(restaurant_id=restaurant_id, data=dump_settings(defaults))
        )
    else:
        row.data = dump_settings(defaults)
    return defaults


async def update_settings(
    session: AsyncSession, restaurant_id: str, patch: AppSettingsUpdate
) -> AppSettings:
    """Apply the fields set in ``patch`` and return the merged settings."""

    if await session.get(Restaurant, restaurant_id) is None:
        raise RestaurantNotFound(restaurant_id)
    row = await session.get(RestaurantSettings, restaurant_id)
    current = parse_settings(row.data if row is not None else None)
    merged = AppSettings.model_validate(
        {**current.model_dump(), **patch.model_dump(exclude_unset=True, exclude_none=True)}
    )
    if row is None:
        session.add(
            RestaurantSettings(restaurant_id=restaurant_id, data=dump_settings(merged))
        )
    else:
        row.data = dump_settings(merged)
    return merged
