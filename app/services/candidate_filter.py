"""
Vivaha — Candidate Filter

Turns a requester's stated preferences into a declarative list of predicate
clauses, then compiles that list into a single SQLAlchemy query:

  requester + preference ──► CandidateFilter(clauses) ──► fetch_candidates()

The same clauses can be evaluated in memory against an already-loaded user
(``CandidateFilter.accepts``), which is how deal-breakers are checked for a
single target without another round trip.

Query-level prioritisation (before any scoring):
  premium desc → last_active_at desc → created_at desc
and the query over-fetches ``limit × overfetch`` rows so that the scorer has
room to drop candidates it cannot score.
"""

from __future__ import annotations

import operator
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import structlog
from sqlalchemy import and_, exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.match import UserMatch
from app.models.preference import UserPreference
from app.models.profile import UserProfile
from app.models.user import User
from app.utils.dates import birth_date_bounds

logger = structlog.get_logger("vivaha.candidate_filter")

# ──────────────────────────────────────────────────────────────────────────────
# Clause vocabulary
# ──────────────────────────────────────────────────────────────────────────────

_ENTITIES: dict[str, type] = {"user": User, "profile": UserProfile}

_PY_OPS = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lte": operator.le,
}


@dataclass(frozen=True)
class FilterClause:
    """One hard predicate on a candidate's ``user`` or ``profile`` row."""

    entity: str
    field: str
    op: str
    value: Any

    def column(self):
        return getattr(_ENTITIES[self.entity], self.field)

    def to_sql(self):
        col = self.column()
        if self.op == "in":
            return col.in_(list(self.value))
        if self.op == "ne":
            # SQL ``<>`` is unknown for NULL; be explicit so both paths agree.
            return and_(col.is_not(None), col != self.value)
        return _PY_OPS[self.op](col, self.value)

    def matches(self, user: User) -> bool:
        """Evaluate against a loaded user; a missing attribute never matches."""
        source = user if self.entity == "user" else user.profile
        if source is None:
            return False
        actual = getattr(source, self.field)
        if actual is None:
            return False
        if self.op == "in":
            return actual in self.value
        return _PY_OPS[self.op](actual, self.value)


@dataclass
class CandidateFilter:
    requester_id: uuid.UUID
    clauses: list[FilterClause] = field(default_factory=list)
    limit: int = 10
    overfetch: int = 3

    @property
    def fetch_limit(self) -> int:
        return self.limit * self.overfetch

    def accepts(self, user: User) -> bool:
        return user.id != self.requester_id and all(c.matches(user) for c in self.clauses)

    def failed_clauses(self, user: User) -> list[FilterClause]:
        return [c for c in self.clauses if not c.matches(user)]


# ──────────────────────────────────────────────────────────────────────────────
# Construction
# ──────────────────────────────────────────────────────────────────────────────

# preference attribute → candidate profile column, for the "value ∈ list" rules
_LIST_RULES: tuple[tuple[str, str], ...] = (
    ("preferred_countries", "current_country"),
    ("preferred_religions", "religion"),
    ("preferred_castes", "caste"),
    ("preferred_education_levels", "education_level"),
    ("preferred_marital_status", "marital_status"),
    ("preferred_diets", "diet"),
    ("preferred_smoking_habits", "smoking"),
    ("preferred_drinking_habits", "drinking"),
)


def build_candidate_filter(
    requester: User,
    preference: UserPreference,
    today: date,
    limit: int = 10,
    overfetch: int = 3,
) -> CandidateFilter:
    """Translate a preference row into hard-filter clauses."""
    clauses = [
        FilterClause("user", "status", "eq", "active"),
        FilterClause("user", "profile_status", "eq", "approved"),
    ]

    if preference.preferred_genders:
        clauses.append(
            FilterClause("user", "gender", "in", tuple(preference.preferred_genders))
        )
    else:
        clauses.append(FilterClause("user", "gender", "ne", requester.gender))

    earliest, latest = birth_date_bounds(preference.min_age, preference.max_age, today)
    clauses.append(FilterClause("user", "date_of_birth", "gt", earliest))
    clauses.append(FilterClause("user", "date_of_birth", "lte", latest))

    if preference.min_height_cm is not None:
        clauses.append(FilterClause("profile", "height_cm", "gte", preference.min_height_cm))
    if preference.max_height_cm is not None:
        clauses.append(FilterClause("profile", "height_cm", "lte", preference.max_height_cm))

    for pref_attr, profile_field in _LIST_RULES:
        allowed = getattr(preference, pref_attr)
        if allowed:
            clauses.append(FilterClause("profile", profile_field, "in", tuple(allowed)))

    if not preference.accept_with_children:
        clauses.append(FilterClause("profile", "have_children", "eq", False))
    if preference.min_income_usd is not None:
        clauses.append(
            FilterClause("profile", "annual_income_usd", "gte", preference.min_income_usd)
        )
    if not preference.accept_physically_challenged:
        clauses.append(FilterClause("profile", "physically_challenged", "eq", False))
    if preference.show_only_verified_profiles:
        clauses.append(FilterClause("profile", "profile_verified", "eq", True))

    return CandidateFilter(
        requester_id=requester.id,
        clauses=clauses,
        limit=limit,
        overfetch=overfetch,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Execution
# ──────────────────────────────────────────────────────────────────────────────


def _pair_exists(requester_id: uuid.UUID):
    """Any match row between the requester and the outer ``User`` row."""
    return exists().where(
        or_(
            and_(UserMatch.user_id == requester_id, UserMatch.matched_user_id == User.id),
            and_(UserMatch.matched_user_id == requester_id, UserMatch.user_id == User.id),
        )
    )


def compile_candidate_query(criteria: CandidateFilter):
    return (
        select(User)
        .join(UserProfile, UserProfile.user_id == User.id)
        .where(User.id != criteria.requester_id)
        .where(*(clause.to_sql() for clause in criteria.clauses))
        .where(~_pair_exists(criteria.requester_id))
        .order_by(
            User.is_premium.desc(),
            User.last_active_at.desc().nulls_last(),
            User.created_at.desc(),
        )
        .limit(criteria.fetch_limit)
    )


async def fetch_candidates(db_session: AsyncSession, criteria: CandidateFilter) -> list[User]:
    result = await db_session.execute(compile_candidate_query(criteria))
    candidates = list(result.scalars().unique().all())
    logger.debug(
        "candidates_fetched",
        requester_id=str(criteria.requester_id),
        clause_count=len(criteria.clauses),
        fetch_limit=criteria.fetch_limit,
        count=len(candidates),
    )
    return candidates


async def find_candidates(
    db_session: AsyncSession,
    requester: User,
    today: date,
    limit: int,
    overfetch: int = 3,
) -> list[User]:
    """Filter stage entry point; no profile or no preference → ``[]``."""
    if requester.profile is None or requester.preference is None:
        logger.info(
            "candidate_filter_skipped",
            requester_id=str(requester.id),
            has_profile=requester.profile is not None,
            has_preference=requester.preference is not None,
        )
        return []

    criteria = build_candidate_filter(
        requester, requester.preference, today, limit=limit, overfetch=overfetch
    )
    return await fetch_candidates(db_session, criteria)
