import json
import logging
import os
import random
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..utils.responses import err

# Query parameters that should be redacted from logs
PII_KEYS = {"password", "cardid", "card_id", "opcode"}
LOG_SAMPLE_2XX = float(os.getenv("LOG_SAMPLE_2XX", "1.0"))


logger = logging.getLogger("tablepoints.http")


def _restaurant_from_path(path: str) -> str | None:
    parts = path.strip("/").split("/")
    try:
        idx = parts.index("restaurants")
        return parts[idx + 1]
    except (ValueError, IndexError):
        return None


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit structured inbound/outbound request logs with a request ID."""

    async def dispatch(self, request: Request, call_next):
        req_id = request.state.request_id

        restaurant = _restaurant_from_path(request.url.path)
        query = {
            k: ("***" if k.lower() in PII_KEYS else v)
            for k, v in request.query_params.items()
        }
        inbound = {
            "req_id": req_id,
            "restaurant": restaurant,
            "path": request.url.path,
            "method": request.method,
            "ip": request.client.host if request.client else None,
            "ua": request.headers.get("user-agent"),
        }
        if query:
            inbound["query"] = query

        start = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception:
            error_id = str(uuid.uuid4())
            logger.exception(json.dumps({"req_id": req_id, "error_id": error_id}))
            payload = err("INTERNAL", "Internal Server Error")
            payload["error_id"] = error_id
            response = JSONResponse(payload, status_code=500)
        dur_ms = int((time.perf_counter() - start) * 1000)
        status = response.status_code
        outbound = {
            "req_id": req_id,
            "restaurant": restaurant,
            "route": request.url.path,
            "status": status,
            "latency_ms": dur_ms,
        }
        if error_id:
            outbound["error_id"] = error_id

        should_log = not (200 <= status < 300 and random.random() >= LOG_SAMPLE_2XX)
        if should_log:
            extra = {"restaurant": restaurant, "route": request.url.path}
            logger.info(json.dumps(inbound, ensure_ascii=False), extra=extra)
            log_fn = logger.error if status >= 500 else logger.info
            log_fn(
                json.dumps(outbound),
                extra={**extra, "status": status, "latency_ms": dur_ms},
            )
        return response
