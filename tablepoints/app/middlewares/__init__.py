from .logging import LoggingMiddleware
from .prometheus import PrometheusMiddleware
from .rate_limit import RateLimitMiddleware
from .request_id import RequestIdMiddleware

__all__ = [
    "RequestIdMiddleware",
    "LoggingMiddleware",
    "PrometheusMiddleware",
    "RateLimitMiddleware",
]
