"""Shared pytest fixtures for Vivaha matching tests."""
import asyncio
import uuid
from datetime import date, timedelta

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.config import Settings
from app.database import Base
from app.models.horoscope import Horoscope
from app.models.preference import UserPreference
from app.models.profile import UserProfile
from app.models.user import User, UserPhoto
from app.utils.dates import shift_years, utcnow

_UNSET = object()

DEFAULT_PROFILE = {
    "height_cm": 165,
    "current_country": "Sri Lanka",
    "current_state": "Western",
    "current_city": "Colombo",
    "education_level": "bachelor",
    "occupation": "engineer",
    "annual_income_usd": 20000,
    "religion": "Buddhist",
    "caste": None,
    "diet": "vegetarian",
    "smoking": "never",
    "drinking": "never",
    "marital_status": "never_married",
    "have_children": False,
    "children_count": 0,
    "family_type": "nuclear",
    "languages_known": ["Sinhala", "English"],
    "hobbies": ["reading"],
    "physically_challenged": False,
    "profile_verified": True,
}


def dob_for_age(age: int, today: date | None = None) -> date:
    """A birth date that makes someone exactly ``age`` today (birthday a month ago)."""
    today = today or utcnow().date()
    return shift_years(today, -age) - timedelta(days=30)


# ── Database ──────────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def make_user(db_session):
    """Factory persisting a user with (optionally) profile, preference and horoscope.

    ``profile`` defaults to ``DEFAULT_PROFILE``; pass overrides as a dict, or
    ``None`` for a user without a profile.  ``preference`` / ``horoscope``
    are omitted unless given.
    """

    async def _make(
        *,
        gender: str = "female",
        age: int = 30,
        profile=_UNSET,
        preference: dict | None = None,
        horoscope: dict | None = None,
        photos: tuple[str, ...] = (),
        **fields,
    ) -> User:
        user_id = fields.pop("id", None) or uuid.uuid4()
        values = {
            "email": f"{user_id}@example.com",
            "first_name": "Test",
            "gender": gender,
            "date_of_birth": dob_for_age(age),
            "status": "active",
            "profile_status": "approved",
            "is_premium": False,
            "last_active_at": utcnow(),
            "profile_completion_percentage": 80,
        }
        values.update(fields)

        if profile is _UNSET:
            profile = {}
        profile_row = None
        if profile is not None:
            profile_row = UserProfile(**{**DEFAULT_PROFILE, **profile})

        user = User(
            id=user_id,
            profile=profile_row,
            preference=UserPreference(**preference) if preference is not None else None,
            horoscope=Horoscope(**horoscope) if horoscope is not None else None,
            photos=[
                UserPhoto(url=f"https://cdn.example.com/{user_id}/{i}.jpg", status=status)
                for i, status in enumerate(photos)
            ],
            **values,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


# ── Redis stand-in ────────────────────────────────────────────────────────────


class FakeLock:
    def __init__(self, lock: asyncio.Lock, available: bool = True, on_acquire=None):
        self._lock = lock
        self._available = available
        self._on_acquire = on_acquire
        self.acquired = False

    async def acquire(self) -> bool:
        if not self._available:
            return False
        await self._lock.acquire()
        self.acquired = True
        if self._on_acquire is not None:
            await self._on_acquire()
        return True

    async def release(self) -> None:
        self.acquired = False
        self._lock.release()


class FakeRedis:
    """In-memory subset of ``redis.asyncio.Redis`` used by DailyMatchCache."""

    def __init__(self, lock_available: bool = True):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}
        self.lock_available = lock_available
        self.on_lock_acquire = None
        self.lock_names: list[str] = []
        self._locks: dict[str, asyncio.Lock] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex
        return True

    def lock(self, name, timeout=None, blocking_timeout=None):
        self.lock_names.append(name)
        return FakeLock(
            self._locks.setdefault(name, asyncio.Lock()),
            available=self.lock_available,
            on_acquire=self.on_lock_acquire,
        )


class DownRedis:
    """Redis client whose every command fails as if the server were unreachable."""

    def __init__(self):
        self.calls: list[str] = []

    def _fail(self, command):
        self.calls.append(command)
        raise RedisConnectionError("Error 111 connecting to redis:6379. Connection refused.")

    async def get(self, key):
        self._fail("get")

    async def set(self, key, value, ex=None):
        self._fail("set")

    def lock(self, name, timeout=None, blocking_timeout=None):
        client = self

        class _Lock:
            async def acquire(self):
                client._fail("acquire")

            async def release(self):
                client._fail("release")

        return _Lock()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def down_redis():
    return DownRedis()
