"""
Vivaha — UserPreference model (desired partner criteria).
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONVariant
from app.utils.dates import utcnow


def _accepts(allowed: list | None, value) -> bool:
    """An empty preference list accepts anything."""
    return not allowed or value in allowed


class UserPreference(Base):
    __tablename__ = "user_preferences"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    min_age: Mapped[int] = mapped_column(Integer, default=18, server_default="18", nullable=False)
    max_age: Mapped[int] = mapped_column(Integer, default=60, server_default="60", nullable=False)
    min_height_cm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_height_cm: Mapped[int | None] = mapped_column(Integer, nullable=True)

    preferred_genders: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    preferred_countries: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    preferred_religions: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    preferred_castes: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    preferred_education_levels: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    preferred_occupations: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    preferred_marital_status: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    preferred_diets: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    preferred_smoking_habits: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    preferred_drinking_habits: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)

    min_income_usd: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_income_usd: Mapped[int | None] = mapped_column(Integer, nullable=True)

    accept_with_children: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )
    max_children_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    accept_physically_challenged: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )
    show_only_verified_profiles: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    user: Mapped["User"] = relationship("User", back_populates="preference")

    def match_score(self, profile: "UserProfile", age: int | None) -> float:
        """How well a candidate profile fits these preferences (0-100).

        Point budget: age 15, location 10, religion 15, education 10,
        lifestyle 20, marital status 10, children 10, height 5, income 5.
        Age earns full marks at the centre of the range and tapers
        linearly towards either bound.
        """
        score = 0.0

        if age is not None and self.min_age <= age <= self.max_age:
            age_range = self.max_age - self.min_age
            if age_range == 0:
                score += 15
            else:
                centre = (self.min_age + self.max_age) / 2
                score += max(0.0, 15 - abs(age - centre) / age_range * 15)

        if _accepts(self.preferred_countries, profile.current_country):
            score += 10
        if _accepts(self.preferred_religions, profile.religion):
            score += 15
        if _accepts(self.preferred_education_levels, profile.education_level):
            score += 10

        if _accepts(self.preferred_diets, profile.diet):
            score += 7
        if _accepts(self.preferred_smoking_habits, profile.smoking):
            score += 7
        if _accepts(self.preferred_drinking_habits, profile.drinking):
            score += 6

        if _accepts(self.preferred_marital_status, profile.marital_status):
            score += 10

        if self.accept_with_children or not profile.have_children:
            if not self.max_children_count or profile.children_count <= self.max_children_count:
                score += 10

        if self._within(profile.height_cm, self.min_height_cm, self.max_height_cm):
            score += 5
        if self._within(profile.annual_income_usd, self.min_income_usd, self.max_income_usd):
            score += 5

        return round(max(0.0, min(100.0, score)), 2)

    @staticmethod
    def _within(value: int | None, lower: int | None, upper: int | None) -> bool:
        if lower is None and upper is None:
            return True
        if value is None:
            return False
        return (lower is None or value >= lower) and (upper is None or value <= upper)

    def __repr__(self) -> str:
        return f"<UserPreference user={self.user_id} age={self.min_age}-{self.max_age}>"
