"""
Vivaha — UserProfile model (a member's own attributes) and the
attribute-similarity score used as the profile component of matching.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONVariant
from app.utils.dates import utcnow

# Ordinal education ranks; unknown levels only score on exact equality.
EDUCATION_RANKS: dict[str, int] = {
    "high_school": 1,
    "diploma": 2,
    "bachelor": 3,
    "master": 4,
    "phd": 5,
}


def _same(a, b) -> bool:
    return a is not None and b is not None and a == b


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    # ── Physical ───────────────────────────────────────────────────
    height_cm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    body_type: Mapped[str | None] = mapped_column(String, nullable=True)
    physically_challenged: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )

    # ── Location ───────────────────────────────────────────────────
    current_country: Mapped[str | None] = mapped_column(String, nullable=True)
    current_state: Mapped[str | None] = mapped_column(String, nullable=True)
    current_city: Mapped[str | None] = mapped_column(String, nullable=True)

    # ── Education / career ─────────────────────────────────────────
    education_level: Mapped[str | None] = mapped_column(String, nullable=True)
    occupation: Mapped[str | None] = mapped_column(String, nullable=True)
    annual_income_usd: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # ── Religion / community ───────────────────────────────────────
    religion: Mapped[str | None] = mapped_column(String, nullable=True)
    caste: Mapped[str | None] = mapped_column(String, nullable=True)

    # ── Lifestyle ──────────────────────────────────────────────────
    diet: Mapped[str | None] = mapped_column(String, nullable=True)
    smoking: Mapped[str | None] = mapped_column(String, nullable=True)
    drinking: Mapped[str | None] = mapped_column(String, nullable=True)

    # ── Family ─────────────────────────────────────────────────────
    marital_status: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="never_married / divorced / widowed / separated"
    )
    have_children: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    children_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    family_type: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="nuclear / joint / extended"
    )

    languages_known: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)
    hobbies: Mapped[list | None] = mapped_column(JSONVariant, nullable=True)

    profile_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    user: Mapped["User"] = relationship("User", back_populates="profile")

    def compatibility_score(self, other: "UserProfile") -> float:
        """Attribute similarity with another profile on a 0-100 scale.

        Point budget: location 20, religion 15, education 15, lifestyle 20,
        family 15, languages 10, hobbies 5.  Attributes missing on either
        side never score.
        """
        score = 0.0

        if _same(self.current_country, other.current_country):
            score += 10
            if _same(self.current_state, other.current_state):
                score += 5
                if _same(self.current_city, other.current_city):
                    score += 5

        if _same(self.religion, other.religion):
            score += 10
            if _same(self.caste, other.caste):
                score += 5

        score += self._education_points(other)

        if _same(self.diet, other.diet):
            score += 7
        if _same(self.smoking, other.smoking):
            score += 7
        if _same(self.drinking, other.drinking):
            score += 6

        if _same(self.family_type, other.family_type):
            score += 8
        if _same(self.marital_status, other.marital_status):
            score += 7

        common_languages = set(self.languages_known or []) & set(other.languages_known or [])
        score += min(10, len(common_languages) * 3)

        common_hobbies = set(self.hobbies or []) & set(other.hobbies or [])
        score += min(5, len(common_hobbies))

        return round(max(0.0, min(100.0, score)), 2)

    def _education_points(self, other: "UserProfile") -> int:
        if self.education_level is None or other.education_level is None:
            return 0
        if self.education_level == other.education_level:
            return 15
        rank_a = EDUCATION_RANKS.get(self.education_level)
        rank_b = EDUCATION_RANKS.get(other.education_level)
        if rank_a is None or rank_b is None:
            return 0
        return {1: 10, 2: 5}.get(abs(rank_a - rank_b), 0)

    def __repr__(self) -> str:
        return (
            f"<UserProfile user={self.user_id} "
            f"country={self.current_country!r} religion={self.religion!r}>"
        )
