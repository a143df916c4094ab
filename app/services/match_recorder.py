"""
Vivaha — Match Recorder

Persists ranked candidates as ``pending`` UserMatch rows in one batched
``INSERT … ON CONFLICT (user_id, matched_user_id) DO NOTHING``.  Duplicate
pairs are skipped silently; the recorder does not re-check existence.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import insert_ignore_duplicates
from app.models.match import MatchAction, MatchStatus, MatchType, UserMatch
from app.services.compatibility import ScoredCandidate
from app.utils.dates import utcnow

logger = structlog.get_logger("vivaha.match_recorder")

DEFAULT_EXPIRY_DAYS = 30

_CONTEXT_MATCH_TYPES = {
    "daily": MatchType.AI_SUGGESTION,
    "premium_suggestion": MatchType.PREMIUM_SUGGESTION,
}


def match_type_for(context: str) -> str:
    """Map a call context onto the stored match type tag."""
    return _CONTEXT_MATCH_TYPES.get(context, MatchType.SEARCH_RESULT)


class MatchRecorder:
    def __init__(self, expiry_days: int = DEFAULT_EXPIRY_DAYS) -> None:
        self.expiry_days = expiry_days

    def build_rows(
        self,
        user_id: uuid.UUID,
        ranked: Sequence[ScoredCandidate],
        context: str,
        now: datetime,
    ) -> list[dict]:
        match_type = match_type_for(context)
        expires_at = now + timedelta(days=self.expiry_days)
        return [
            {
                "id": uuid.uuid4(),
                "user_id": user_id,
                "matched_user_id": candidate.user_id,
                "match_type": match_type,
                "status": MatchStatus.PENDING,
                "user_action": MatchAction.NONE,
                "matched_user_action": MatchAction.NONE,
                "compatibility_score": candidate.compatibility_score,
                "profile_score": candidate.profile_score,
                "preference_score": candidate.preference_score,
                "horoscope_score": candidate.horoscope_score,
                "activity_score": candidate.activity_score,
                "matching_factors": list(candidate.matching_factors),
                "can_communicate": False,
                "expires_at": expires_at,
                "created_at": now,
            }
            for candidate in ranked
        ]

    async def record(
        self,
        db_session: AsyncSession,
        user_id: uuid.UUID,
        ranked: Sequence[ScoredCandidate],
        context: str,
        now: datetime | None = None,
    ) -> int:
        """Insert one pending row per candidate; returns rows actually written."""
        if not ranked:
            return 0
        now = now or utcnow()
        rows = self.build_rows(user_id, ranked, context, now)

        stmt = insert_ignore_duplicates(
            db_session, UserMatch, ["user_id", "matched_user_id"]
        ).values(rows)
        result = await db_session.execute(stmt)
        inserted = max(result.rowcount or 0, 0)

        logger.info(
            "match_records_inserted",
            user_id=str(user_id),
            context=context,
            requested=len(rows),
            inserted=inserted,
            skipped=len(rows) - inserted,
        )
        return inserted
