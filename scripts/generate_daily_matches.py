#!/usr/bin/env python3
"""
Vivaha — Daily Match Generation CLI

Batch job that pre-computes today's suggestions for every eligible member
(active, approved profile, profile completion at or above the configured
minimum) and then expires pending matches past their horizon.

Each user is processed in its own transaction so one failure does not roll
back everyone else's suggestions.  Users whose suggestions are already
cached for today are skipped unless ``--refresh`` is given.

Usage examples
--------------
  # All eligible users, tiered limits (free / premium)
  python scripts/generate_daily_matches.py

  # A single user with an explicit limit
  python scripts/generate_daily_matches.py --user-id 6f1c... --limit 10

  # Recompute even when today's cache is warm, without Redis
  python scripts/generate_daily_matches.py --refresh --no-cache
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
import uuid

# Ensure the project root is importable
sys.path.insert(0, ".")

import structlog
from sqlalchemy import select

from app.config import get_settings
from app.database import async_session_factory
from app.models.user import User
from app.services.matching_service import MatchingService
from app.utils.dates import utcnow

logger = structlog.get_logger("vivaha.scripts.generate_daily_matches")


# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

def eligible_users_query(min_completion: int, batch_size: int, after: uuid.UUID | None):
    stmt = (
        select(User.id)
        .where(
            User.status == "active",
            User.profile_status == "approved",
            User.profile_completion_percentage >= min_completion,
        )
        .order_by(User.id)
        .limit(batch_size)
    )
    if after is not None:
        stmt = stmt.where(User.id > after)
    return stmt


def _redis_client(use_cache: bool):
    if not use_cache:
        return None
    import redis.asyncio as aioredis

    return aioredis.from_url(get_settings().REDIS_URL, decode_responses=True)


async def generate_for_user(
    service: MatchingService,
    user_id: uuid.UUID,
    limit: int | None,
    refresh: bool,
) -> int | None:
    """Return the number of suggestions, or ``None`` if the user vanished."""
    async with async_session_factory() as session:
        async with session.begin():
            user = await session.get(User, user_id)
            if user is None:
                return None
            matches = await service.generate_daily_matches(
                session, user, limit=limit, refresh=refresh
            )
            return len(matches)


# ──────────────────────────────────────────────────────────────────────────────
# Main
# ──────────────────────────────────────────────────────────────────────────────

async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    client = _redis_client(not args.no_cache)
    service = MatchingService.from_settings(settings, redis=client)

    started = time.perf_counter()
    processed = failed = 0

    try:
        if args.user_id:
            user_id = uuid.UUID(args.user_id)
            count = await generate_for_user(service, user_id, args.limit, args.refresh)
            if count is None:
                print(f"  User {user_id} not found.")
                return 1
            print(f"  Generated {count} matches for user {user_id}")
            processed = 1
        else:
            after: uuid.UUID | None = None
            while True:
                async with async_session_factory() as session:
                    result = await session.execute(
                        eligible_users_query(
                            settings.DAILY_MATCH_MIN_COMPLETION, args.batch_size, after
                        )
                    )
                    batch = list(result.scalars().all())
                if not batch:
                    break

                for user_id in batch:
                    try:
                        await generate_for_user(service, user_id, args.limit, args.refresh)
                        processed += 1
                    except Exception as exc:
                        failed += 1
                        logger.warning(
                            "daily_match_generation_failed",
                            user_id=str(user_id),
                            error=str(exc),
                        )
                after = batch[-1]

        async with async_session_factory() as session:
            async with session.begin():
                expired = await service.expire_stale_matches(session, utcnow())
    finally:
        if client is not None:
            await client.aclose()

    elapsed_ms = (time.perf_counter() - started) * 1000

    print(f"\n{'=' * 60}")
    print("  Daily Match Generation")
    print(f"{'=' * 60}")
    print(f"  Users processed:   {processed}")
    print(f"  Users failed:      {failed}")
    print(f"  Matches expired:   {expired}")
    print(f"  Elapsed:           {elapsed_ms:.0f} ms")
    print(f"{'=' * 60}\n")

    logger.info(
        "daily_match_generation_complete",
        processed=processed,
        failed=failed,
        expired=expired,
        elapsed_ms=round(elapsed_ms, 2),
    )
    return 0 if failed == 0 else 2


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate daily match suggestions for eligible users.",
    )
    parser.add_argument("--user-id", help="Only generate for this user (UUID)")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Suggestions per user (default: free/premium tier limit)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="Users fetched per batch (default: 100)",
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Recompute even if today's suggestions are cached",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not use Redis (no caching, no computation lock)",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
