"""
Vivaha — Compatibility Scorer

Four independently computed sub-scores, each on [0, 100]:

  profile    — UserProfile.compatibility_score(other)   (attribute similarity)
  preference — UserPreference.match_score(profile, age)  (fit to stated wishes)
  horoscope  — Guna Milan if precomputed, else additive Vedic heuristics
  activity   — recency of last activity, completeness, approved photos

Final score:
  final = profile×w_p + preference×w_pref + horoscope×w_h + activity×w_a
          + premium_bonus (candidate is premium)

Default weights: 0.3 / 0.4 / 0.2 / 0.1, premium bonus 5.  The final score is
rounded to two decimals and only clamped to 100 when
``CLAMP_COMPATIBILITY_SCORE`` is enabled.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

import structlog

from app.config import Settings, get_settings
from app.models.horoscope import Horoscope
from app.models.profile import UserProfile
from app.models.user import User
from app.utils.dates import age_on, ensure_utc, utcnow

logger = structlog.get_logger("vivaha.compatibility")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

NEUTRAL_HOROSCOPE_SCORE = 50.0
_MISSING_ACTIVITY_DAYS = 30
_GUNA_MAX = 36

# Traditionally compatible moon signs (Vedic), four per sign.
MOON_SIGN_COMPATIBILITY: dict[str, tuple[str, ...]] = {
    "Aries": ("Gemini", "Leo", "Sagittarius", "Aquarius"),
    "Taurus": ("Cancer", "Virgo", "Capricorn", "Pisces"),
    "Gemini": ("Aries", "Leo", "Libra", "Aquarius"),
    "Cancer": ("Taurus", "Virgo", "Scorpio", "Pisces"),
    "Leo": ("Aries", "Gemini", "Libra", "Sagittarius"),
    "Virgo": ("Taurus", "Cancer", "Scorpio", "Capricorn"),
    "Libra": ("Gemini", "Leo", "Sagittarius", "Aquarius"),
    "Scorpio": ("Cancer", "Virgo", "Capricorn", "Pisces"),
    "Sagittarius": ("Aries", "Leo", "Libra", "Aquarius"),
    "Capricorn": ("Taurus", "Virgo", "Scorpio", "Pisces"),
    "Aquarius": ("Aries", "Gemini", "Libra", "Sagittarius"),
    "Pisces": ("Taurus", "Cancer", "Scorpio", "Capricorn"),
}


def _clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    return max(lower, min(upper, value))


def _same(a, b) -> bool:
    return a is not None and b is not None and a == b


def _sign(value: str | None) -> str | None:
    """Zodiac, moon sign and nakshatra names compare case- and space-insensitively."""
    if value is None or not value.strip():
        return None
    return value.strip().title()


# ──────────────────────────────────────────────────────────────────────────────
# Result type
# ──────────────────────────────────────────────────────────────────────────────


@dataclass
class ScoredCandidate:
    """A candidate with its sub-scores, ready to rank, record, or cache."""

    user_id: uuid.UUID
    compatibility_score: float
    profile_score: float
    preference_score: float
    horoscope_score: float
    activity_score: float
    is_premium: bool = False
    matching_factors: list[str] = field(default_factory=list)
    card: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["user_id"] = str(self.user_id)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoredCandidate":
        values = dict(data)
        values["user_id"] = uuid.UUID(str(values["user_id"]))
        return cls(**values)


def candidate_card(user: User) -> dict[str, Any]:
    profile = user.profile
    return {
        "first_name": user.first_name,
        "age": user.age,
        "city": profile.current_city if profile else None,
        "country": profile.current_country if profile else None,
        "religion": profile.religion if profile else None,
        "photo_url": user.primary_photo_url,
    }


# ──────────────────────────────────────────────────────────────────────────────
# Scorer
# ──────────────────────────────────────────────────────────────────────────────


class CompatibilityScorer:
    """Pure scoring functions bound to the configured weights."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.w_profile: float = settings.PROFILE_WEIGHT
        self.w_preference: float = settings.PREFERENCE_WEIGHT
        self.w_horoscope: float = settings.HOROSCOPE_WEIGHT
        self.w_activity: float = settings.ACTIVITY_WEIGHT
        self.premium_bonus: float = settings.PREMIUM_BONUS
        self.clamp_final: bool = settings.CLAMP_COMPATIBILITY_SCORE

    # ── Sub-scores ────────────────────────────────────────────────────

    @staticmethod
    def profile_score(requester: User, candidate: User) -> float:
        if requester.profile is None or candidate.profile is None:
            return 0.0
        return _clamp(requester.profile.compatibility_score(candidate.profile))

    @staticmethod
    def preference_score(requester: User, candidate: User, now: datetime) -> float:
        if requester.preference is None or candidate.profile is None:
            return 0.0
        age = age_on(candidate.date_of_birth, now.date())
        return _clamp(requester.preference.match_score(candidate.profile, age))

    @staticmethod
    def horoscope_score(mine: Horoscope | None, theirs: Horoscope | None) -> float:
        """Vedic compatibility from the requester's point of view.

        Missing data on either side is neutral (50).  A precomputed Guna
        Milan score on the requester's chart wins outright; otherwise the
        score starts at 50 and adds or subtracts for zodiac, moon sign,
        manglik status and nakshatra.
        """
        if mine is None or theirs is None:
            return NEUTRAL_HOROSCOPE_SCORE

        if mine.guna_milan_score is not None:
            return round(_clamp(mine.guna_milan_score / _GUNA_MAX * 100), 2)

        score = 50.0
        if _same(_sign(mine.zodiac_sign), _sign(theirs.zodiac_sign)):
            score += 15
        my_moon, their_moon = _sign(mine.moon_sign), _sign(theirs.moon_sign)
        if my_moon and their_moon:
            if their_moon in MOON_SIGN_COMPATIBILITY.get(my_moon, ()):
                score += 20
        if mine.manglik == theirs.manglik:
            score += 15
        elif mine.manglik and not theirs.manglik:
            score -= 20
        if _same(_sign(mine.nakshatra), _sign(theirs.nakshatra)):
            score += 10

        return round(_clamp(score), 2)

    @staticmethod
    def activity_score(candidate: User, now: datetime) -> float:
        last_active = ensure_utc(candidate.last_active_at)
        if last_active is None:
            days = _MISSING_ACTIVITY_DAYS
        else:
            days = max(0, (now - last_active).days)

        base = 100 - min(days * 2, 50)
        completion = candidate.profile_completion_percentage or 0
        photo_bonus = 10 if candidate.approved_photos else 0
        score = base * 0.6 + completion * 0.3 + photo_bonus
        return round(_clamp(score), 2)

    def final_score(
        self,
        profile: float,
        preference: float,
        horoscope: float,
        activity: float,
        is_premium: bool,
    ) -> float:
        score = (
            profile * self.w_profile
            + preference * self.w_preference
            + horoscope * self.w_horoscope
            + activity * self.w_activity
            + (self.premium_bonus if is_premium else 0.0)
        )
        if self.clamp_final:
            score = _clamp(score)
        return round(max(0.0, score), 2)

    # ── Matching factors ──────────────────────────────────────────────

    @staticmethod
    def matching_factors(mine: UserProfile | None, theirs: UserProfile | None) -> list[str]:
        """Informational tags describing what the two profiles share."""
        if mine is None or theirs is None:
            return []

        factors: list[str] = []
        if _same(mine.current_country, theirs.current_country):
            factors.append("same_country")
            if _same(mine.current_city, theirs.current_city):
                factors.append("same_city")
        if _same(mine.religion, theirs.religion):
            factors.append("same_religion")
            if _same(mine.caste, theirs.caste):
                factors.append("same_caste")
        if _same(mine.education_level, theirs.education_level):
            factors.append("similar_education")
        if set(mine.languages_known or []) & set(theirs.languages_known or []):
            factors.append("common_languages")
        if _same(mine.diet, theirs.diet):
            factors.append("same_diet")
        if _same(mine.smoking, theirs.smoking):
            factors.append("same_smoking_habits")
        if _same(mine.family_type, theirs.family_type):
            factors.append("similar_family_background")
        return factors

    # ── Full evaluation ───────────────────────────────────────────────

    def score(
        self,
        requester: User,
        candidate: User,
        now: datetime | None = None,
    ) -> ScoredCandidate | None:
        """Score one candidate; ``None`` when the candidate has no profile."""
        if candidate.profile is None:
            return None
        now = now or utcnow()

        profile = self.profile_score(requester, candidate)
        preference = self.preference_score(requester, candidate, now)
        horoscope = self.horoscope_score(requester.horoscope, candidate.horoscope)
        activity = self.activity_score(candidate, now)
        final = self.final_score(
            profile, preference, horoscope, activity, bool(candidate.is_premium)
        )

        logger.debug(
            "candidate_scored",
            requester_id=str(requester.id),
            candidate_id=str(candidate.id),
            profile=profile,
            preference=preference,
            horoscope=horoscope,
            activity=activity,
            final=final,
        )

        return ScoredCandidate(
            user_id=candidate.id,
            compatibility_score=final,
            profile_score=profile,
            preference_score=preference,
            horoscope_score=horoscope,
            activity_score=activity,
            is_premium=bool(candidate.is_premium),
            matching_factors=self.matching_factors(requester.profile, candidate.profile),
            card=candidate_card(candidate),
        )

    @staticmethod
    def quick_score(requester: User, candidate: User) -> float:
        """Profile-only score used when a like creates a row on the fly."""
        if requester.profile is None or candidate.profile is None:
            return NEUTRAL_HOROSCOPE_SCORE
        return _clamp(requester.profile.compatibility_score(candidate.profile))
