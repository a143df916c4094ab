"""
Vivaha — Matching Engine

Orchestrates the suggestion pipeline:

  Candidate Filter ──► Compatibility Scorer (per candidate) ──► Ranker
                   ──► Match Recorder (pending rows, 30-day expiry)

and fronts the like / mutual-match state machine.  Daily suggestions are
cached per (user, ISO date) for six hours; concurrent regenerations for the
same user and day collapse onto one computation behind a short-lived Redis
lock (double-checked read inside the lock).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import structlog
from redis.exceptions import LockError, RedisError
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models.match import MatchAction, MatchStatus, UserMatch, quality_label
from app.models.user import User
from app.services.candidate_filter import build_candidate_filter, find_candidates
from app.services.compatibility import CompatibilityScorer, ScoredCandidate
from app.services.match_actions import ActionOutcome, MatchActionService
from app.services.match_recorder import MatchRecorder
from app.services.ranking import rank_candidates
from app.utils.cache import DailyMatchCache
from app.utils.dates import utcnow

logger = structlog.get_logger("vivaha.matching_service")


class MatchingService:
    """Suggestion pipeline and action facade.

    Dependencies are injected at construction so that the service can be
    tested with fakes and swapped in FastAPI's dependency-injection graph.
    """

    def __init__(
        self,
        cache: DailyMatchCache | None = None,
        settings: Settings | None = None,
        scorer: CompatibilityScorer | None = None,
        actions: MatchActionService | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.cache = cache
        self.scorer = scorer or CompatibilityScorer(self.settings)
        self.recorder = MatchRecorder(expiry_days=self.settings.MATCH_EXPIRY_DAYS)
        self.actions = actions or MatchActionService(scorer=self.scorer)

        logger.info(
            "matching_service_initialised",
            w_profile=self.scorer.w_profile,
            w_preference=self.scorer.w_preference,
            w_horoscope=self.scorer.w_horoscope,
            w_activity=self.scorer.w_activity,
            has_cache=cache is not None,
        )

    @classmethod
    def from_settings(cls, settings: Settings, redis: Any = None) -> MatchingService:
        """Build the service, with a daily-match cache when a Redis client is given."""
        cache = None
        if redis is not None:
            cache = DailyMatchCache(
                redis,
                ttl_seconds=settings.DAILY_MATCH_CACHE_TTL_SECONDS,
                lock_timeout_seconds=settings.DAILY_MATCH_LOCK_TIMEOUT_SECONDS,
                lock_wait_seconds=settings.DAILY_MATCH_LOCK_WAIT_SECONDS,
            )
        return cls(cache=cache, settings=settings)

    # ── Suggestions ───────────────────────────────────────────────────

    def daily_limit_for(self, user: User) -> int:
        if user.is_premium_active:
            return self.settings.PREMIUM_DAILY_MATCHES
        return self.settings.FREE_DAILY_MATCHES

    async def find_matches(
        self,
        db_session: AsyncSession,
        user: User,
        limit: int = 20,
        context: str = "search",
        now: datetime | None = None,
    ) -> list[ScoredCandidate]:
        """Filter, score, rank and record candidates (never cached)."""
        now = now or utcnow()
        log = logger.bind(user_id=str(user.id), context=context, limit=limit)

        candidates = await find_candidates(
            db_session,
            user,
            now.date(),
            limit,
            overfetch=self.settings.CANDIDATE_OVERFETCH_FACTOR,
        )
        if not candidates:
            log.info("find_matches_empty")
            return []

        ranked = rank_candidates(self.scorer, user, candidates, limit, now)
        await self.recorder.record(db_session, user.id, ranked, context, now)

        log.info(
            "find_matches_complete",
            pool=len(candidates),
            returned=len(ranked),
            top_score=ranked[0].compatibility_score if ranked else None,
        )
        return ranked

    async def generate_daily_matches(
        self,
        db_session: AsyncSession,
        user: User,
        limit: int | None = None,
        refresh: bool = False,
        today: date | None = None,
    ) -> list[ScoredCandidate]:
        today = today or utcnow().date()
        limit = limit if limit is not None else self.daily_limit_for(user)
        log = logger.bind(user_id=str(user.id), day=today.isoformat(), refresh=refresh)

        if self.cache is None:
            return await self.find_matches(db_session, user, limit, context="daily")

        if not refresh:
            cached = await self._read_cache(user, today)
            if cached is not None:
                log.info("daily_matches_cache_hit", count=len(cached))
                return cached

        lock = self.cache.lock(user.id, today)
        try:
            acquired = await lock.acquire()
        except RedisError:
            log.exception("daily_matches_lock_failed")
            return await self.find_matches(db_session, user, limit, context="daily")

        if not acquired:
            # Another worker is computing; take its result if it landed.
            log.warning("daily_matches_lock_busy")
            cached = await self._read_cache(user, today)
            if cached is not None:
                return cached
            return await self.find_matches(db_session, user, limit, context="daily")

        try:
            if not refresh:
                cached = await self._read_cache(user, today)
                if cached is not None:
                    log.info("daily_matches_cache_hit_after_lock", count=len(cached))
                    return cached

            ranked = await self.find_matches(db_session, user, limit, context="daily")
            await self.cache.set(user.id, today, [r.to_dict() for r in ranked])
            log.info("daily_matches_generated", count=len(ranked))
            return ranked
        finally:
            await self._release(lock, log)

    async def _read_cache(self, user: User, today: date) -> list[ScoredCandidate] | None:
        payload = await self.cache.get(user.id, today)
        if payload is None:
            return None
        return [ScoredCandidate.from_dict(item) for item in payload]

    @staticmethod
    async def _release(lock: Any, log) -> None:
        try:
            await lock.release()
        except LockError:
            log.warning("daily_matches_lock_expired_before_release")
        except RedisError:
            log.exception("daily_matches_lock_release_failed")

    async def get_premium_suggestions(
        self,
        db_session: AsyncSession,
        user: User,
        limit: int = 5,
    ) -> list[ScoredCandidate]:
        """Premium members only: a doubled pool cut at the quality threshold."""
        if not user.is_premium_active:
            return []
        matches = await self.find_matches(
            db_session, user, limit * 2, context="premium_suggestion"
        )
        threshold = self.settings.PREMIUM_SUGGESTION_MIN_SCORE
        return [m for m in matches if m.compatibility_score >= threshold][:limit]

    # ── Single-target views ───────────────────────────────────────────

    def check_deal_breakers(
        self,
        user: User,
        target: User,
        today: date | None = None,
    ) -> dict:
        """Evaluate the hard filters against one target in memory."""
        if user.preference is None or target.profile is None:
            return {"passes": True, "failed": []}
        today = today or utcnow().date()
        criteria = build_candidate_filter(user, user.preference, today)
        failed = sorted({clause.field for clause in criteria.failed_clauses(target)})
        return {"passes": criteria.accepts(target), "failed": failed}

    def preview_compatibility(self, user: User, target: User) -> dict | None:
        scored = self.scorer.score(user, target)
        if scored is None:
            return None
        result = scored.to_dict()
        result["match_quality"] = quality_label(scored.compatibility_score)
        result["deal_breakers"] = self.check_deal_breakers(user, target)
        return result

    # ── Maintenance ───────────────────────────────────────────────────

    async def update_match_scores(self, db_session: AsyncSession, user: User) -> int:
        """Refresh the quick score on the user's still-pending rows."""
        stmt = select(UserMatch).where(
            UserMatch.user_id == user.id,
            UserMatch.status == MatchStatus.PENDING,
        )
        rows = (await db_session.execute(stmt)).scalars().all()

        updated = 0
        for row in rows:
            target = row.matched_user
            if target is None or target.profile is None:
                continue
            row.compatibility_score = self.scorer.quick_score(user, target)
            updated += 1

        await db_session.flush()
        logger.info("match_scores_updated", user_id=str(user.id), updated=updated)
        return updated

    async def expire_stale_matches(
        self,
        db_session: AsyncSession,
        now: datetime | None = None,
    ) -> int:
        now = now or utcnow()
        stmt = (
            update(UserMatch)
            .where(
                UserMatch.status == MatchStatus.PENDING,
                UserMatch.expires_at.is_not(None),
                UserMatch.expires_at <= now,
            )
            .values(status=MatchStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        result = await db_session.execute(stmt)
        logger.info("stale_matches_expired", count=result.rowcount)
        return result.rowcount

    async def get_match_statistics(self, db_session: AsyncSession, user: User) -> dict:
        positive = UserMatch.user_action.in_(MatchAction.POSITIVE)

        def _count(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        sent_stmt = select(
            func.count(UserMatch.id),
            _count(UserMatch.status == MatchStatus.MUTUAL),
            _count(UserMatch.status == MatchStatus.PENDING),
            _count(positive),
            _count(UserMatch.user_action == MatchAction.SUPER_LIKED),
            _count(positive & (UserMatch.matched_user_action != MatchAction.NONE)),
        ).where(UserMatch.user_id == user.id)
        total, mutual, pending, likes_sent, super_sent, responded = (
            (await db_session.execute(sent_stmt)).one()
        )

        received_stmt = select(func.count(UserMatch.id)).where(
            UserMatch.matched_user_id == user.id, positive
        )
        likes_received = (await db_session.execute(received_stmt)).scalar_one()

        response_rate = round(responded / likes_sent * 100, 1) if likes_sent else 0.0
        return {
            "total_matches": int(total),
            "mutual_matches": int(mutual),
            "pending_matches": int(pending),
            "likes_sent": int(likes_sent),
            "likes_received": int(likes_received),
            "super_likes_sent": int(super_sent),
            "response_rate": response_rate,
        }

    # ── Actions (delegated to the state machine) ──────────────────────

    async def process_like(
        self,
        db_session: AsyncSession,
        initiator: User,
        target: User,
        is_super_like: bool = False,
    ) -> ActionOutcome:
        return await self.actions.process_like(db_session, initiator, target, is_super_like)

    async def process_dislike(
        self, db_session: AsyncSession, initiator: User, target: User
    ) -> ActionOutcome:
        return await self.actions.process_dislike(db_session, initiator, target)

    async def process_block(
        self, db_session: AsyncSession, initiator: User, target: User
    ) -> ActionOutcome:
        return await self.actions.process_block(db_session, initiator, target)

    async def process_unblock(
        self, db_session: AsyncSession, initiator: User, target: User
    ) -> ActionOutcome:
        return await self.actions.process_unblock(db_session, initiator, target)

    async def get_mutual_matches(self, db_session: AsyncSession, user: User) -> list[UserMatch]:
        return await self.actions.get_mutual_matches(db_session, user)

    async def get_who_liked_me(self, db_session: AsyncSession, user: User) -> list[UserMatch]:
        return await self.actions.get_who_liked_me(db_session, user)
