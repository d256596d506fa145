import importlib.util
from pathlib import Path

import requests
import responses

from tablepoints.client import OrderOutbox, OrderSurfaceClient, OutboxStatus

# Dynamically import the worker module
_path = Path(__file__).resolve().parents[2] / "ops" / "scripts" / "sync_worker.py"
spec = importlib.util.spec_from_file_location("sync_worker", _path)
sync_worker = importlib.util.module_from_spec(spec)
spec.loader.exec_module(sync_worker)

ORDERS = "http://cloud/api/restaurants/r1/orders"


def test_worker_offline_then_online(tmp_path):
    outbox = OrderOutbox(f"sqlite:///{tmp_path / 'outbox.db'}")
    client = OrderSurfaceClient("http://cloud", outbox)
    outbox.append("r1", "key-1", {"tableId": "t1", "order": []}, "offline")

    # First attempt fails due to connectivity issues
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, ORDERS, body=requests.ConnectionError("offline"))
        assert sync_worker.process_once(client)["failed"] == 1

    [entry] = outbox.pending()
    assert entry.retries == 1

    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, ORDERS, json={"ok": True, "data": {"order": {"id": "o9"}}})
        assert sync_worker.process_once(client)["synced"] == 1
        assert rsps.calls[0].request.headers["Idempotency-Key"] == "key-1"

    [synced] = outbox.entries(OutboxStatus.SYNCED)
    assert synced.server_order_id == "o9"
