"""Dependency helpers for super-admin endpoints."""

import secrets

from fastapi import Header, HTTPException

from config import get_settings


def require_super_admin(x_admin_key: str | None = Header(default=None)) -> None:
    """Ensure the ``X-Admin-Key`` header matches ``super_admin_key``.

    Raises:
        HTTPException: 403 when no key is configured or the header is wrong.
    """
    expected = get_settings().super_admin_key
    # no key configured means the admin surface is disabled
    if not expected or not x_admin_key:
        raise HTTPException(403, "Forbidden")
    if not secrets.compare_digest(x_admin_key, expected):
        raise HTTPException(403, "Forbidden")
