"""Date helpers shared by the candidate filter and the scorer."""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def shift_years(day: date, years: int) -> date:
    """Move ``day`` by whole calendar years; Feb 29 falls back to Feb 28."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def age_on(date_of_birth: date | None, today: date) -> int | None:
    if date_of_birth is None:
        return None
    before_birthday = (today.month, today.day) < (date_of_birth.month, date_of_birth.day)
    return today.year - date_of_birth.year - int(before_birthday)


def birth_date_bounds(min_age: int, max_age: int, today: date) -> tuple[date, date]:
    """Return the exclusive lower / inclusive upper birth dates for an age range.

    A person is aged within ``[min_age, max_age]`` on ``today`` exactly when
    ``earliest < date_of_birth <= latest``.
    """
    latest = shift_years(today, -min_age)
    earliest = shift_years(today, -(max_age + 1))
    return earliest, latest
