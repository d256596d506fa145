"""FastAPI application wiring for the ordering and points API."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.asyncio import from_url
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings

from .db import create_sessionmaker, get_engine, init_models
from .errors import TablePointsError
from .middlewares import (
    LoggingMiddleware,
    PrometheusMiddleware,
    RateLimitMiddleware,
    RequestIdMiddleware,
)
from .obs import configure_logging
from .routes_admin import router as admin_router
from .routes_metrics import router as metrics_router
from .routes_orders import router as orders_router
from .routes_point_cards import router as point_cards_router
from .routes_restaurants import router as restaurants_router
from .services.settings_resolver import SettingsResolver
from .utils.responses import err, ok

logger = logging.getLogger("tablepoints")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO))
    settings = get_settings()
    engine = redis = None
    if getattr(app.state, "sessionmaker", None) is None:
        engine = get_engine()
        await init_models(engine)
        app.state.sessionmaker = create_sessionmaker(engine)
    if getattr(app.state, "redis", None) is None:
        redis = app.state.redis = from_url(settings.redis_url, decode_responses=True)
    if getattr(app.state, "resolver", None) is None:
        app.state.resolver = SettingsResolver(app.state.sessionmaker, app.state.redis)
    logger.info("tablepoints started")
    try:
        yield
    finally:
        if redis is not None:
            await redis.aclose()
        if engine is not None:
            await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(title="tablepoints", lifespan=lifespan)

    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(TablePointsError)
    async def domain_error_handler(request: Request, exc: TablePointsError):
        logger.warning(
            exc.message,
            extra={"status": exc.status_code, "route": request.url.path},
        )
        return JSONResponse(err(exc.code, exc.message), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(
            exc.detail,
            extra={"status": exc.status_code, "route": request.url.path},
        )
        return JSONResponse(err(exc.status_code, exc.detail), status_code=exc.status_code)

    @app.get("/health")
    async def health() -> dict:
        return ok({"status": "ok"})

    app.include_router(orders_router)
    app.include_router(restaurants_router)
    app.include_router(point_cards_router)
    app.include_router(admin_router)
    app.include_router(metrics_router)
    return app


app = create_app()
