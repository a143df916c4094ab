"""Candidate filter tests against an in-memory SQLite database."""
from datetime import timedelta

import pytest

from app.models.match import MatchType, UserMatch
from app.services.candidate_filter import (
    FilterClause,
    build_candidate_filter,
    fetch_candidates,
    find_candidates,
)
from app.utils.dates import utcnow


def _today():
    return utcnow().date()


async def _requester(make_user, **preference):
    pref = {"min_age": 25, "max_age": 40}
    pref.update(preference)
    return await make_user(gender="male", age=32, preference=pref)


async def _ids(db_session, requester, limit=10):
    found = await find_candidates(db_session, requester, _today(), limit)
    return [u.id for u in found]


class TestWorkedExample:
    """Religion + age filtering example."""

    @pytest.mark.asyncio
    async def test_hindu_excluded_buddhist_included(self, db_session, make_user):
        requester = await _requester(
            make_user, preferred_religions=["Buddhist", "Christian"]
        )
        hindu = await make_user(age=30, profile={"religion": "Hindu"})
        buddhist = await make_user(age=30, profile={"religion": "Buddhist"})

        ids = await _ids(db_session, requester)

        assert buddhist.id in ids
        assert hindu.id not in ids


class TestHardFilters:
    """Each preference rule excludes what it should."""

    @pytest.mark.asyncio
    async def test_never_returns_requester(self, db_session, make_user):
        requester = await _requester(make_user, preferred_genders=["male", "female"])
        ids = await _ids(db_session, requester)
        assert requester.id not in ids

    @pytest.mark.asyncio
    @pytest.mark.parametrize("age,included", [(24, False), (25, True), (40, True), (41, False)])
    async def test_age_bounds_are_inclusive(self, db_session, make_user, age, included):
        requester = await _requester(make_user)
        candidate = await make_user(age=age)
        assert (candidate.id in await _ids(db_session, requester)) is included

    @pytest.mark.asyncio
    async def test_opposite_gender_by_default(self, db_session, make_user):
        requester = await _requester(make_user)
        same = await make_user(gender="male")
        other = await make_user(gender="female")
        ids = await _ids(db_session, requester)
        assert other.id in ids
        assert same.id not in ids

    @pytest.mark.asyncio
    async def test_preferred_genders_override_default(self, db_session, make_user):
        requester = await _requester(make_user, preferred_genders=["male"])
        same = await make_user(gender="male")
        other = await make_user(gender="female")
        ids = await _ids(db_session, requester)
        assert same.id in ids
        assert other.id not in ids

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "preference,profile,included",
        [
            ({"min_height_cm": 170}, {"height_cm": 165}, False),
            ({"max_height_cm": 170}, {"height_cm": 165}, True),
            ({"min_height_cm": 160}, {"height_cm": None}, False),
            ({"preferred_countries": ["India"]}, {"current_country": "Sri Lanka"}, False),
            ({"preferred_education_levels": ["master"]}, {"education_level": "bachelor"}, False),
            ({"preferred_marital_status": ["never_married"]}, {"marital_status": "divorced"}, False),
            ({"accept_with_children": False}, {"have_children": True, "children_count": 1}, False),
            ({"accept_with_children": True}, {"have_children": True, "children_count": 1}, True),
            ({"min_income_usd": 30000}, {"annual_income_usd": 20000}, False),
            ({"min_income_usd": 10000}, {"annual_income_usd": 20000}, True),
            ({"preferred_diets": ["vegan"]}, {"diet": "vegetarian"}, False),
            ({"preferred_smoking_habits": ["never"]}, {"smoking": "regularly"}, False),
            ({"preferred_drinking_habits": ["never"]}, {"drinking": "never"}, True),
            ({"accept_physically_challenged": False}, {"physically_challenged": True}, False),
            ({"show_only_verified_profiles": True}, {"profile_verified": False}, False),
            ({"preferred_castes": ["Govigama"]}, {"caste": "Karava"}, False),
            ({"preferred_religions": []}, {"religion": "Hindu"}, True),
        ],
    )
    async def test_profile_rules(self, db_session, make_user, preference, profile, included):
        requester = await _requester(make_user, **preference)
        candidate = await make_user(profile=profile)
        assert (candidate.id in await _ids(db_session, requester)) is included

    @pytest.mark.asyncio
    async def test_inactive_and_unapproved_users_excluded(self, db_session, make_user):
        requester = await _requester(make_user)
        suspended = await make_user(status="suspended")
        pending = await make_user(profile_status="pending")
        ok = await make_user()
        ids = await _ids(db_session, requester)
        assert ids == [ok.id]
        assert suspended.id not in ids and pending.id not in ids

    @pytest.mark.asyncio
    async def test_candidates_without_profile_excluded(self, db_session, make_user):
        requester = await _requester(make_user)
        await make_user(profile=None)
        assert await _ids(db_session, requester) == []


class TestExistingPairs:
    """Any prior match row, in either direction, removes the candidate."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("direction", ["forward", "reverse"])
    async def test_existing_row_excludes(self, db_session, make_user, direction):
        requester = await _requester(make_user)
        seen = await make_user()
        fresh = await make_user()

        user_id, matched_id = (requester.id, seen.id)
        if direction == "reverse":
            user_id, matched_id = matched_id, user_id
        db_session.add(
            UserMatch(
                user_id=user_id,
                matched_user_id=matched_id,
                match_type=MatchType.SEARCH_RESULT,
                compatibility_score=0.0,
            )
        )
        await db_session.flush()

        ids = await _ids(db_session, requester)
        assert ids == [fresh.id]


class TestOrderingAndLimits:
    """Query-level prioritisation and over-fetch."""

    @pytest.mark.asyncio
    async def test_premium_then_recent_activity(self, db_session, make_user):
        requester = await _requester(make_user)
        now = utcnow()
        stale = await make_user(last_active_at=now - timedelta(days=9))
        recent = await make_user(last_active_at=now - timedelta(hours=1))
        premium = await make_user(is_premium=True, last_active_at=now - timedelta(days=20))
        never = await make_user(last_active_at=None)

        ids = await _ids(db_session, requester)
        assert ids == [premium.id, recent.id, stale.id, never.id]

    @pytest.mark.asyncio
    async def test_overfetches_three_times_the_limit(self, db_session, make_user):
        requester = await _requester(make_user)
        for _ in range(8):
            await make_user()
        found = await find_candidates(db_session, requester, _today(), limit=2)
        assert len(found) == 6

    @pytest.mark.asyncio
    async def test_no_preference_returns_empty(self, db_session, make_user):
        requester = await make_user(gender="male")
        await make_user()
        assert await find_candidates(db_session, requester, _today(), 10) == []

    @pytest.mark.asyncio
    async def test_no_profile_returns_empty(self, db_session, make_user):
        requester = await make_user(gender="male", profile=None, preference={"min_age": 18})
        await make_user()
        assert await find_candidates(db_session, requester, _today(), 10) == []


class TestClauses:
    """Declarative clause list."""

    @pytest.mark.asyncio
    async def test_in_memory_evaluation_agrees_with_query(self, db_session, make_user):
        requester = await _requester(
            make_user, preferred_religions=["Buddhist"], min_height_cm=160
        )
        keep = await make_user(profile={"religion": "Buddhist", "height_cm": 170})
        drop = await make_user(profile={"religion": "Hindu", "height_cm": 170})
        short = await make_user(profile={"religion": "Buddhist", "height_cm": 150})

        criteria = build_candidate_filter(requester, requester.preference, _today())
        queried = {u.id for u in await fetch_candidates(db_session, criteria)}

        for user in (keep, drop, short):
            assert criteria.accepts(user) is (user.id in queried)
        assert queried == {keep.id}

    def test_missing_attribute_never_matches(self):
        class _Obj:
            profile = None

        clause = FilterClause("profile", "height_cm", "gte", 150)
        assert clause.matches(_Obj()) is False

    @pytest.mark.asyncio
    async def test_failed_clauses_name_the_field(self, db_session, make_user):
        requester = await _requester(make_user, preferred_religions=["Christian"])
        candidate = await make_user(age=50)
        criteria = build_candidate_filter(requester, requester.preference, _today())
        failed = {c.field for c in criteria.failed_clauses(candidate)}
        assert failed == {"religion", "date_of_birth"}
