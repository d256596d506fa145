"""Local append-only ledger of orders the server could not accept in time.

Entries are never deleted; a sync moves them from ``pending`` to ``synced``
or ``rejected`` and keeps the idempotency key they were first sent with.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base

OutboxBase = declarative_base()


class OutboxStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    REJECTED = "rejected"


class UnsyncedOrder(OutboxBase):
    """An order payload queued while the API was unreachable."""

    __tablename__ = "unsynced_orders"

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    restaurant_id = Column(String(64), nullable=False)
    idempotency_key = Column(String(128), nullable=False, unique=True)
    payload = Column(JSON, nullable=False)
    status = Column(String(16), nullable=False, default=OutboxStatus.PENDING.value)
    retries = Column(Integer, nullable=False, default=0)
    last_error = Column(String, nullable=True)
    server_order_id = Column(String(64), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )


class OrderOutbox:
    """SQLite-backed outbox; ``url`` is any synchronous SQLAlchemy URL."""

    def __init__(self, url: str = "sqlite:///tablepoints_outbox.db", engine: Engine | None = None):
        self.engine = engine or create_engine(url)
        OutboxBase.metadata.create_all(self.engine)

    def append(self, restaurant_id: str, idempotency_key: str, payload: dict, error: str) -> str:
        with Session(self.engine) as session:
            entry = UnsyncedOrder(
                restaurant_id=restaurant_id,
                idempotency_key=idempotency_key,
                payload=payload,
                last_error=error,
            )
            session.add(entry)
            session.commit()
            return entry.id

    def entries(self, status: OutboxStatus | None = None) -> List[UnsyncedOrder]:
        """Return entries oldest first, optionally filtered by ``status``."""
        stmt = select(UnsyncedOrder).order_by(UnsyncedOrder.created_at)
        if status is not None:
            stmt = stmt.where(UnsyncedOrder.status == status.value)
        with Session(self.engine, expire_on_commit=False) as session:
            return list(session.scalars(stmt).all())

    def pending(self) -> List[UnsyncedOrder]:
        return self.entries(OutboxStatus.PENDING)

    def mark_synced(self, entry_id: str, server_order_id: str | None) -> None:
        with Session(self.engine) as session:
            entry = session.get(UnsyncedOrder, entry_id)
            entry.status = OutboxStatus.SYNCED.value
            entry.server_order_id = server_order_id
            entry.last_error = None
            session.commit()

    def mark_rejected(self, entry_id: str, error: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(UnsyncedOrder, entry_id)
            entry.status = OutboxStatus.REJECTED.value
            entry.last_error = error
            session.commit()

    def record_failure(self, entry_id: str, error: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(UnsyncedOrder, entry_id)
            entry.retries += 1
            entry.last_error = error
            session.commit()
