"""Optimistic transaction runner.

Every multi-row mutation of the points ledger goes through
:func:`run_transaction`. The callable receives a fresh ``AsyncSession`` inside
``session.begin()``; it must issue all reads before its writes. If the store
reports a conflict (a lock timeout, a unique-key race or a stale row) the
whole callable is re-run on a new session, up to ``txn_max_attempts`` times.
Any other exception rolls the transaction back and propagates unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from config import get_settings

from ..errors import TransactionConflict
from ..routes_metrics import txn_retries_total

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE = (OperationalError, IntegrityError, StaleDataError)


async def run_transaction(
    sessionmaker: async_sessionmaker[AsyncSession],
    fn: Callable[[AsyncSession], Awaitable[T]],
    *,
    max_attempts: int | None = None,
) -> T:
    """Run ``fn`` atomically, retrying the whole unit on store conflicts.

    Raises :class:`~tablepoints.app.errors.TransactionConflict` once the
    attempts are exhausted.
    """

    settings = get_settings()
    attempts = max_attempts or settings.txn_max_attempts
    backoff = settings.txn_retry_backoff_ms / 1000
    last_exc: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            async with sessionmaker() as session:
                async with session.begin():
                    return await fn(session)
        except RETRYABLE as exc:
            last_exc = exc
            txn_retries_total.inc()
            logger.warning(
                "transaction conflict (attempt %d/%d): %s",
                attempt,
                attempts,
                exc.__class__.__name__,
            )
            if attempt < attempts:
                await asyncio.sleep(backoff * attempt * (1 + random.random()))
    raise TransactionConflict() from last_exc


__all__ = ["run_transaction", "RETRYABLE"]
