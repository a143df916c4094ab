"""
Vivaha — UserMatch model (directed match record) and its vocabularies.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONVariant
from app.utils.dates import utcnow


class MatchType:
    AI_SUGGESTION = "ai_suggestion"
    SEARCH_RESULT = "search_result"
    MUTUAL_INTEREST = "mutual_interest"
    PREMIUM_SUGGESTION = "premium_suggestion"


class MatchStatus:
    PENDING = "pending"
    LIKED = "liked"
    SUPER_LIKED = "super_liked"
    DISLIKED = "disliked"
    BLOCKED = "blocked"
    MUTUAL = "mutual"
    EXPIRED = "expired"


class MatchAction:
    NONE = "none"
    LIKED = "liked"
    SUPER_LIKED = "super_liked"
    DISLIKED = "disliked"
    BLOCKED = "blocked"

    POSITIVE = (LIKED, SUPER_LIKED)


def quality_label(score: float | None) -> str:
    score = score or 0.0
    if score >= 85:
        return "excellent"
    if score >= 70:
        return "very_good"
    if score >= 55:
        return "good"
    if score >= 40:
        return "fair"
    return "poor"


class UserMatch(Base):
    """One directed row per (initiator, candidate) pair.

    ``user_action`` is what ``user_id`` did to ``matched_user_id``;
    ``matched_user_action`` mirrors the candidate's action on the reverse
    row so that either row alone tells whether the pair is mutual.
    """

    __tablename__ = "user_matches"
    __table_args__ = (
        UniqueConstraint("user_id", "matched_user_id", name="uq_user_match_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    matched_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    match_type: Mapped[str] = mapped_column(
        String, nullable=False,
        comment="ai_suggestion / search_result / mutual_interest / premium_suggestion",
    )
    status: Mapped[str] = mapped_column(
        String, default=MatchStatus.PENDING, server_default=MatchStatus.PENDING,
        index=True, nullable=False,
    )

    user_action: Mapped[str] = mapped_column(
        String, default=MatchAction.NONE, server_default=MatchAction.NONE, nullable=False
    )
    user_action_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    matched_user_action: Mapped[str] = mapped_column(
        String, default=MatchAction.NONE, server_default=MatchAction.NONE, nullable=False
    )
    matched_user_action_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    compatibility_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    profile_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    preference_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    horoscope_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    activity_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    matching_factors: Mapped[list | None] = mapped_column(
        JSONVariant, nullable=True, comment="Informational tags such as same_country"
    )

    can_communicate: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    communication_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    conversation_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("conversations.id", ondelete="SET NULL"), nullable=True
    )

    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    user: Mapped["User"] = relationship(
        "User", foreign_keys=[user_id], lazy="selectin"
    )
    matched_user: Mapped["User"] = relationship(
        "User", foreign_keys=[matched_user_id], lazy="selectin"
    )

    @property
    def match_quality(self) -> str:
        return quality_label(self.compatibility_score)

    def __repr__(self) -> str:
        return (
            f"<UserMatch {self.user_id} -> {self.matched_user_id} "
            f"status={self.status!r} score={self.compatibility_score:.2f}>"
        )
