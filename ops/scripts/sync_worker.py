#!/usr/bin/env python3
"""Background worker to replay queued orders to the ordering API.

Environment variables:
- OUTBOX_URL: SQLAlchemy URL for the local outbox (default: sqlite:///tablepoints_outbox.db).
- API_URL: Base URL of the ordering API.
- POLL_INTERVAL: Seconds between polling attempts (default: 5).
"""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[2]
sys.path.append(str(BASE_DIR))

from tablepoints.client import OrderOutbox, OrderSurfaceClient  # noqa: E402

logger = logging.getLogger("tablepoints.sync_worker")


def process_once(client: OrderSurfaceClient) -> dict:
    """Attempt to send all pending orders once."""
    return client.sync_pending()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    outbox = OrderOutbox(os.getenv("OUTBOX_URL", "sqlite:///tablepoints_outbox.db"))
    client = OrderSurfaceClient(os.environ["API_URL"], outbox)
    poll = int(os.getenv("POLL_INTERVAL", "5"))
    while True:
        counts = process_once(client)
        if counts["failed"]:
            logger.warning("%d queued orders still pending", counts["failed"])
        time.sleep(poll)


if __name__ == "__main__":
    main()
