"""Request correlation ids shared by log records and error envelopes."""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

HEADER = "X-Request-ID"

# Ids echoed from ordering devices end up in logs and response headers
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def accept_request_id(value: str | None) -> str:
    """Return ``value`` when it is a short token, else a fresh id."""
    if value and _SAFE_ID.match(value):
        return value
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request and echo it back."""

    async def dispatch(self, request: Request, call_next):
        req_id = accept_request_id(request.headers.get(HEADER))
        request.state.request_id = req_id
        token = request_id_ctx.set(req_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[HEADER] = req_id
        return response
