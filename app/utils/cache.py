"""
Vivaha — Daily match cache.

Wraps a ``redis.asyncio`` client with the two operations the matching
service needs for daily suggestions:

* a JSON payload keyed by ``(user_id, iso_date)`` with a fixed TTL, and
* a short-lived computation lock on the same key so that concurrent
  regenerations for one user/day collapse into a single computation.
"""

from __future__ import annotations

import json
import uuid
from datetime import date
from typing import Any

import structlog
from redis.exceptions import RedisError

logger = structlog.get_logger("vivaha.daily_match_cache")


def _json_default(obj: Any) -> str:
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    raise TypeError(f"Object of type {obj.__class__.__name__} is not JSON serializable")


class DailyMatchCache:
    """Redis-backed cache for per-day match suggestions.

    The cache is an optimisation only: a Redis failure on read is a miss and
    a failure on write is logged and dropped, never raised to the caller.
    """

    KEY_PREFIX = "daily_matches"

    def __init__(
        self,
        client: Any,
        ttl_seconds: int,
        lock_timeout_seconds: int = 60,
        lock_wait_seconds: int = 15,
    ) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.lock_timeout_seconds = lock_timeout_seconds
        self.lock_wait_seconds = lock_wait_seconds

    @classmethod
    def key(cls, user_id: uuid.UUID | str, day: date) -> str:
        return f"{cls.KEY_PREFIX}:{user_id}:{day.isoformat()}"

    async def get(self, user_id: uuid.UUID | str, day: date) -> list[dict] | None:
        key = self.key(user_id, day)
        try:
            raw = await self.client.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except (RedisError, ValueError):
            logger.exception("daily_matches_cache_read_failed", key=key)
            return None

    async def set(
        self,
        user_id: uuid.UUID | str,
        day: date,
        payload: list[dict],
    ) -> bool:
        """Store ``payload``; returns ``False`` when Redis rejected the write."""
        key = self.key(user_id, day)
        try:
            await self.client.set(
                key,
                json.dumps(payload, default=_json_default),
                ex=self.ttl_seconds,
            )
        except RedisError:
            logger.exception("daily_matches_cache_write_failed", key=key)
            return False
        logger.debug("daily_matches_cached", key=key, count=len(payload))
        return True

    def lock(self, user_id: uuid.UUID | str, day: date):
        """Return a (not yet acquired) lock guarding one user/day computation."""
        return self.client.lock(
            f"{self.key(user_id, day)}:lock",
            timeout=self.lock_timeout_seconds,
            blocking_timeout=self.lock_wait_seconds,
        )
