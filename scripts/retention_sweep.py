#!/usr/bin/env python3
"""Purge expired orders and daily ledgers.

Orders, point logs and dish-order logs carry an ``expire_at`` timestamp set
when they are written (30, 90 and 30 days by default). This helper deletes
every row whose ``expire_at`` has passed. Run it from cron once a day.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Ensure the project root is importable when running as a standalone script
BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from tablepoints.app.db import create_sessionmaker, get_engine  # noqa: E402
from tablepoints.app.obs import configure_logging  # noqa: E402
from tablepoints.app.services.retention import purge_expired  # noqa: E402


async def sweep(dsn: str | None = None, now: datetime | None = None) -> dict:
    """Delete expired rows from the database at ``dsn``.

    Parameters
    ----------
    dsn:
        SQLAlchemy URL; defaults to the configured ``database_url``.
    now:
        Reference time; rows with ``expire_at`` before it are removed.
    """

    engine = get_engine(dsn)
    try:
        async with create_sessionmaker(engine)() as session:
            return await purge_expired(session, now or datetime.now(timezone.utc))
    finally:
        await engine.dispose()


def _cli() -> None:
    parser = argparse.ArgumentParser(
        description="Remove expired orders, point logs and dish-order logs"
    )
    parser.add_argument("--dsn", default=None, help="Database URL override")
    args = parser.parse_args()
    configure_logging(logging.INFO)
    removed = asyncio.run(sweep(args.dsn))
    print(" ".join(f"{name}={count}" for name, count in removed.items()))


if __name__ == "__main__":
    _cli()
