"""Ranker: score, sort and truncate a candidate pool."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

import structlog

from app.models.user import User
from app.services.compatibility import CompatibilityScorer, ScoredCandidate

logger = structlog.get_logger("vivaha.ranking")


def rank_scored(scored: Iterable[ScoredCandidate | None], limit: int) -> list[ScoredCandidate]:
    """Drop unscorable entries, sort by final score (stable), keep ``limit``."""
    kept = [s for s in scored if s is not None]
    ordered = sorted(kept, key=lambda s: s.compatibility_score, reverse=True)
    return ordered[: max(0, limit)]


def rank_candidates(
    scorer: CompatibilityScorer,
    requester: User,
    candidates: Iterable[User],
    limit: int,
    now: datetime | None = None,
) -> list[ScoredCandidate]:
    candidates = list(candidates)
    ranked = rank_scored((scorer.score(requester, c, now) for c in candidates), limit)
    logger.debug(
        "candidates_ranked",
        requester_id=str(requester.id),
        pool=len(candidates),
        returned=len(ranked),
    )
    return ranked
