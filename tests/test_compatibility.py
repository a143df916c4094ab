"""Unit tests for the compatibility scorer and the model-level sub-scores."""
import uuid
from datetime import timedelta

import pytest

from app.config import Settings
from app.models.horoscope import Horoscope
from app.models.preference import UserPreference
from app.models.profile import UserProfile
from app.models.user import User, UserPhoto
from app.services.compatibility import (
    NEUTRAL_HOROSCOPE_SCORE,
    CompatibilityScorer,
    ScoredCandidate,
)
from app.utils.dates import utcnow

from tests.conftest import DEFAULT_PROFILE, dob_for_age


def _profile(**overrides) -> UserProfile:
    return UserProfile(**{**DEFAULT_PROFILE, **overrides})


def _preference(**overrides) -> UserPreference:
    values = {
        "min_age": 18,
        "max_age": 60,
        "accept_with_children": True,
        "accept_physically_challenged": True,
        "show_only_verified_profiles": False,
    }
    values.update(overrides)
    return UserPreference(**values)


def _user(profile=None, preference=None, horoscope=None, photos=(), **fields) -> User:
    values = {
        "id": uuid.uuid4(),
        "email": "x@example.com",
        "first_name": "Test",
        "gender": "female",
        "date_of_birth": dob_for_age(30),
        "is_premium": False,
        "last_active_at": utcnow(),
        "profile_completion_percentage": 80,
    }
    values.update(fields)
    return User(
        profile=profile,
        preference=preference,
        horoscope=horoscope,
        photos=[UserPhoto(url="u", status=s) for s in photos],
        **values,
    )


def _horoscope(**fields) -> Horoscope:
    values = {"zodiac_sign": None, "moon_sign": None, "nakshatra": None, "manglik": False}
    values.update(fields)
    return Horoscope(**values)


@pytest.fixture
def scorer():
    return CompatibilityScorer(Settings(_env_file=None))


class TestHoroscopeScore:
    """Vedic horoscope compatibility."""

    def test_missing_requester_horoscope_is_neutral(self, scorer):
        assert scorer.horoscope_score(None, _horoscope(zodiac_sign="Leo")) == NEUTRAL_HOROSCOPE_SCORE

    def test_missing_candidate_horoscope_is_neutral(self, scorer):
        assert scorer.horoscope_score(_horoscope(zodiac_sign="Leo"), None) == 50.0

    def test_manglik_mismatch_worked_example(self, scorer):
        """manglik vs non-manglik, same zodiac, no Guna Milan → 50 + 15 − 20 = 45."""
        mine = _horoscope(zodiac_sign="Leo", manglik=True)
        theirs = _horoscope(zodiac_sign="Leo", manglik=False)
        assert scorer.horoscope_score(mine, theirs) == 45.0

    def test_guna_milan_takes_precedence(self, scorer):
        mine = _horoscope(zodiac_sign="Leo", guna_milan_score=27)
        theirs = _horoscope(zodiac_sign="Aries")
        assert scorer.horoscope_score(mine, theirs) == 75.0

    def test_guna_milan_zero_is_a_real_score(self, scorer):
        mine = _horoscope(guna_milan_score=0)
        assert scorer.horoscope_score(mine, _horoscope()) == 0.0

    def test_compatible_moon_sign_adds_twenty(self, scorer):
        mine = _horoscope(zodiac_sign="Leo", moon_sign="Aries")
        theirs = _horoscope(zodiac_sign="Virgo", moon_sign="leo")
        # 50 + 20 (moon) + 15 (both non-manglik)
        assert scorer.horoscope_score(mine, theirs) == 85.0

    def test_candidate_manglik_requester_not_gets_no_adjustment(self, scorer):
        mine = _horoscope(manglik=False)
        theirs = _horoscope(manglik=True)
        assert scorer.horoscope_score(mine, theirs) == 50.0

    def test_clamped_to_hundred(self, scorer):
        mine = _horoscope(zodiac_sign="Leo", moon_sign="Aries", nakshatra="Magha")
        theirs = _horoscope(zodiac_sign="Leo", moon_sign="Gemini", nakshatra="Magha")
        # 50 + 15 + 20 + 15 + 10 = 110
        assert scorer.horoscope_score(mine, theirs) == 100.0

    def test_missing_signs_never_match(self, scorer):
        """Two absent zodiac signs are not 'equal'."""
        assert scorer.horoscope_score(_horoscope(), _horoscope()) == 65.0

    def test_sign_names_compare_case_insensitively(self, scorer):
        mine = _horoscope(zodiac_sign="aries", nakshatra="ashwini ")
        theirs = _horoscope(zodiac_sign="Aries", nakshatra="Ashwini")
        # 50 + 15 (zodiac) + 15 (both non-manglik) + 10 (nakshatra)
        assert scorer.horoscope_score(mine, theirs) == 90.0

    def test_blank_signs_never_match(self, scorer):
        mine = _horoscope(zodiac_sign=" ", moon_sign="")
        theirs = _horoscope(zodiac_sign=" ", moon_sign="")
        assert scorer.horoscope_score(mine, theirs) == 65.0


class TestActivityScore:
    """Recency / completeness / photo blend."""

    def test_active_now_complete_with_photo(self, scorer):
        now = utcnow()
        user = _user(last_active_at=now, profile_completion_percentage=80, photos=("approved",))
        # 100×0.6 + 80×0.3 + 10
        assert scorer.activity_score(user, now) == 94.0

    def test_missing_last_active_counts_as_thirty_days(self, scorer):
        user = _user(last_active_at=None, profile_completion_percentage=0)
        assert scorer.activity_score(user, utcnow()) == 30.0

    def test_ten_days_inactive(self, scorer):
        now = utcnow()
        user = _user(last_active_at=now - timedelta(days=10), profile_completion_percentage=50)
        # (100 − 20)×0.6 + 15
        assert scorer.activity_score(user, now) == 63.0

    def test_only_approved_photos_count(self, scorer):
        now = utcnow()
        user = _user(last_active_at=now, profile_completion_percentage=0, photos=("pending",))
        assert scorer.activity_score(user, now) == 60.0

    def test_inactivity_penalty_caps_at_fifty(self, scorer):
        now = utcnow()
        user = _user(last_active_at=now - timedelta(days=400), profile_completion_percentage=0)
        assert scorer.activity_score(user, now) == 30.0


class TestFinalScore:
    """Weighted combination and premium bonus."""

    def test_weighted_sum(self, scorer):
        assert scorer.final_score(50, 50, 50, 50, is_premium=False) == 50.0

    def test_premium_bonus(self, scorer):
        assert scorer.final_score(50, 50, 50, 50, is_premium=True) == 55.0

    def test_overflow_preserved_by_default(self, scorer):
        assert scorer.final_score(100, 100, 100, 100, is_premium=True) == 105.0

    def test_overflow_clamped_when_configured(self):
        clamped = CompatibilityScorer(Settings(_env_file=None, CLAMP_COMPATIBILITY_SCORE=True))
        assert clamped.final_score(100, 100, 100, 100, is_premium=True) == 100.0

    def test_rounded_to_two_places(self, scorer):
        assert scorer.final_score(33.333, 0, 0, 0, is_premium=False) == 10.0


class TestProfileAndPreferenceScores:
    """Model-level sub-scores used by the scorer."""

    def test_identical_profiles(self):
        a = _profile(caste="Govigama", languages_known=["Sinhala", "English", "Tamil", "Hindi"])
        b = _profile(caste="Govigama", languages_known=["Sinhala", "English", "Tamil", "Hindi"])
        # location 20, religion 15, education 15, lifestyle 20, family 15,
        # languages 10 (capped), hobbies 1
        assert a.compatibility_score(b) == 96.0

    def test_adjacent_education_levels(self):
        a = _profile(education_level="bachelor")
        b = _profile(education_level="master")
        c = _profile(education_level="phd")
        assert a._education_points(b) == 10
        assert a._education_points(c) == 5
        assert _profile(education_level="high_school")._education_points(c) == 0

    def test_missing_attributes_never_score(self):
        a = UserProfile(languages_known=None, hobbies=None)
        b = UserProfile(languages_known=None, hobbies=None)
        assert a.compatibility_score(b) == 0.0

    def test_preference_centre_of_age_range_scores_full(self):
        pref = _preference(min_age=30, max_age=40)
        assert pref.match_score(_profile(), age=35) == 100.0

    def test_preference_age_outside_range_scores_no_age_points(self):
        pref = _preference(min_age=30, max_age=40)
        assert pref.match_score(_profile(), age=45) == 85.0

    def test_preference_lists_reduce_score(self):
        pref = _preference(
            min_age=30,
            max_age=40,
            preferred_religions=["Christian"],
            preferred_diets=["non_vegetarian"],
        )
        assert pref.match_score(_profile(), age=35) == 100.0 - 15 - 7

    def test_preference_height_bound_needs_a_height(self):
        pref = _preference(min_age=30, max_age=40, min_height_cm=160)
        assert pref.match_score(_profile(height_cm=None), age=35) == 95.0


class TestScore:
    """End-to-end scoring of one candidate."""

    def test_candidate_without_profile_is_unscorable(self, scorer):
        requester = _user(profile=_profile(), preference=_preference())
        candidate = _user(profile=None)
        assert scorer.score(requester, candidate) is None

    def test_sub_scores_within_bounds(self, scorer):
        requester = _user(
            profile=_profile(),
            preference=_preference(min_age=25, max_age=35),
            horoscope=_horoscope(zodiac_sign="Leo", manglik=True),
        )
        candidate = _user(
            profile=_profile(current_city="Kandy"),
            horoscope=_horoscope(zodiac_sign="Leo"),
            is_premium=True,
            photos=("approved",),
        )
        scored = scorer.score(requester, candidate)

        assert isinstance(scored, ScoredCandidate)
        for value in (
            scored.profile_score,
            scored.preference_score,
            scored.horoscope_score,
            scored.activity_score,
        ):
            assert 0.0 <= value <= 100.0
        assert scored.horoscope_score == 45.0
        assert scored.compatibility_score >= 0.0
        assert scored.is_premium is True
        assert "same_country" in scored.matching_factors
        assert "same_city" not in scored.matching_factors
        assert scored.card["city"] == "Kandy"

    def test_quick_score_defaults_to_fifty_without_profiles(self, scorer):
        assert scorer.quick_score(_user(profile=None), _user(profile=_profile())) == 50.0

    def test_round_trip_through_cache_payload(self, scorer):
        requester = _user(profile=_profile(), preference=_preference())
        candidate = _user(profile=_profile())
        scored = scorer.score(requester, candidate)
        assert ScoredCandidate.from_dict(scored.to_dict()) == scored


class TestMatchingFactors:
    """Informational tags."""

    def test_full_overlap(self, scorer):
        a = _profile(caste="Govigama")
        b = _profile(caste="Govigama")
        assert scorer.matching_factors(a, b) == [
            "same_country",
            "same_city",
            "same_religion",
            "same_caste",
            "similar_education",
            "common_languages",
            "same_diet",
            "same_smoking_habits",
            "similar_family_background",
        ]

    def test_city_requires_same_country(self, scorer):
        a = _profile(current_country="India", current_city="Colombo")
        b = _profile(current_country="Sri Lanka", current_city="Colombo")
        factors = scorer.matching_factors(a, b)
        assert "same_country" not in factors
        assert "same_city" not in factors

    def test_missing_profile(self, scorer):
        assert scorer.matching_factors(None, _profile()) == []
