"""Application startup wiring and health reporting."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from app import main
from app.services.matching_service import MatchingService
from app.utils.cache import DailyMatchCache


def _patched_resources(settings, redis):
    return (
        patch.object(main, "get_settings", return_value=settings),
        patch.object(main, "_warm_database", new=AsyncMock()),
        patch.object(main, "_close_database", new=AsyncMock()),
        patch.object(main, "_open_redis", new=AsyncMock(return_value=redis)),
        patch.object(main, "_close_redis", new=AsyncMock()),
    )


class TestLifespan:

    @pytest.mark.asyncio
    async def test_service_built_with_cache_when_redis_is_up(self, settings, fake_redis):
        app = FastAPI()
        get, warm, close_db, open_redis, close_redis = _patched_resources(settings, fake_redis)
        with get, warm, close_db, open_redis, close_redis as closed:
            async with main.lifespan(app):
                service = app.state.matching_service
                assert isinstance(service, MatchingService)
                assert isinstance(service.cache, DailyMatchCache)
                assert service.cache.client is fake_redis
                assert service.cache.ttl_seconds == settings.DAILY_MATCH_CACHE_TTL_SECONDS

        closed.assert_awaited_once_with(fake_redis)
        assert app.state.redis is None

    @pytest.mark.asyncio
    async def test_service_runs_uncached_without_redis(self, settings):
        app = FastAPI()
        get, warm, close_db, open_redis, close_redis = _patched_resources(settings, None)
        with get, warm, close_db, open_redis, close_redis:
            async with main.lifespan(app):
                assert app.state.matching_service.cache is None


class TestOpenRedis:

    @pytest.mark.asyncio
    async def test_unreachable_redis_returns_none(self, settings):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
        client.aclose = AsyncMock()

        with patch.object(main.aioredis, "from_url", return_value=client):
            assert await main._open_redis(settings) is None

        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reachable_redis_is_returned(self, settings):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)

        with patch.object(main.aioredis, "from_url", return_value=client):
            assert await main._open_redis(settings) is client


class TestDeepHealth:

    @pytest.mark.asyncio
    async def test_disabled_cache_is_still_healthy(self):
        main.app.state.redis = None
        with patch.object(main, "_database_status", new=AsyncMock(return_value="connected")):
            async with AsyncClient(
                transport=ASGITransport(app=main.app), base_url="http://test"
            ) as ac:
                resp = await ac.get("/health/deep")

        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy", "database": "connected", "redis": "disabled"}

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self):
        async with AsyncClient(
            transport=ASGITransport(app=main.app), base_url="http://test"
        ) as ac:
            resp = await ac.get("/health", headers={"X-Request-ID": "req-42"})

        assert resp.headers["X-Request-ID"] == "req-42"
