"""
Vivaha — FastAPI Application Entry Point

The lifespan owns every long-lived resource: it warms the database pool,
opens the Redis client behind the daily-match cache and builds the single
``MatchingService`` the routers share.  Redis is optional; without it the
service runs uncached.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings, get_settings
from app.database import async_session_factory, engine
from app.services.matching_service import MatchingService


def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger("vivaha")

# ── Resources ─────────────────────────────────────────────────────────────────


async def _warm_database() -> None:
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_pool_initialised")


async def _close_database() -> None:
    await engine.dispose()
    logger.info("database_pool_closed")


async def _open_redis(settings: Settings):
    """Connect and ping; ``None`` when Redis is unreachable."""
    client = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=5,
    )
    try:
        await client.ping()
    except (RedisError, OSError):
        logger.exception("redis_unavailable_cache_disabled", url=settings.REDIS_URL)
        await client.aclose()
        return None
    logger.info("redis_connected", url=settings.REDIS_URL)
    return client


async def _close_redis(client) -> None:
    if client is None:
        return
    await client.aclose()
    logger.info("redis_closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("startup_begin", environment=settings.ENVIRONMENT)

    await _warm_database()
    redis = await _open_redis(settings)
    app.state.redis = redis
    app.state.matching_service = MatchingService.from_settings(settings, redis=redis)

    logger.info("startup_complete", cache_enabled=redis is not None)
    try:
        yield
    finally:
        logger.info("shutdown_begin")
        await _close_redis(redis)
        app.state.redis = None
        await _close_database()
        logger.info("shutdown_complete")


# ── Application ───────────────────────────────────────────────────────────────

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Vivaha Matching",
    description="Preference-based matrimonial matching and mutual-match engine",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Tag every log line of a request with its id and log the outcome."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed")
        raise
    logger.info(
        "request_handled",
        status=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


# ── Health ────────────────────────────────────────────────────────────────────


@app.get("/health", tags=["health"])
async def health_liveness() -> dict:
    return {"status": "healthy"}


async def _database_status() -> str:
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.error("health_db_failure", error=str(exc))
        return f"error: {exc}"
    return "connected"


async def _redis_status(client) -> str:
    if client is None:
        return "disabled"
    try:
        await client.ping()
    except RedisError as exc:
        logger.error("health_redis_failure", error=str(exc))
        return f"error: {exc}"
    return "connected"


@app.get("/health/deep", tags=["health"])
async def health_deep(request: Request) -> dict:
    """Readiness probe; a disabled cache does not degrade the service."""
    database = await _database_status()
    redis = await _redis_status(getattr(request.app.state, "redis", None))
    healthy = database == "connected" and redis in ("connected", "disabled")
    return {
        "status": "healthy" if healthy else "degraded",
        "database": database,
        "redis": redis,
    }


from app.api.router import router as api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")
