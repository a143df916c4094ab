"""
Vivaha — User and UserPhoto models.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.utils.dates import age_on, ensure_utc, utcnow


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    gender: Mapped[str] = mapped_column(String, nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String, default="active", server_default="active", nullable=False,
        comment="active / suspended / deactivated",
    )
    profile_status: Mapped[str] = mapped_column(
        String, default="pending", server_default="pending", nullable=False,
        comment="pending / approved / rejected",
    )
    is_premium: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    premium_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_active_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    profile_completion_percentage: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    profile: Mapped["UserProfile | None"] = relationship(
        "UserProfile", back_populates="user", uselist=False,
        cascade="all, delete-orphan", lazy="selectin",
    )
    preference: Mapped["UserPreference | None"] = relationship(
        "UserPreference", back_populates="user", uselist=False,
        cascade="all, delete-orphan", lazy="selectin",
    )
    horoscope: Mapped["Horoscope | None"] = relationship(
        "Horoscope", back_populates="user", uselist=False,
        cascade="all, delete-orphan", lazy="selectin",
    )
    photos: Mapped[list["UserPhoto"]] = relationship(
        "UserPhoto", back_populates="user",
        cascade="all, delete-orphan", lazy="selectin",
    )

    @property
    def age(self) -> int | None:
        return age_on(self.date_of_birth, utcnow().date())

    @property
    def is_premium_active(self) -> bool:
        if not self.is_premium:
            return False
        expires = ensure_utc(self.premium_expires_at)
        return expires is None or expires > utcnow()

    @property
    def approved_photos(self) -> list["UserPhoto"]:
        return [p for p in self.photos if p.status == "approved"]

    @property
    def primary_photo_url(self) -> str | None:
        photos = sorted(self.approved_photos, key=lambda p: not p.is_profile_picture)
        return photos[0].url if photos else None

    def __repr__(self) -> str:
        return f"<User {self.email!r} id={self.id}>"


class UserPhoto(Base):
    __tablename__ = "user_photos"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    url: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(
        String, default="pending", server_default="pending", nullable=False,
        comment="pending / approved / rejected",
    )
    is_profile_picture: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="photos")

    def __repr__(self) -> str:
        return f"<UserPhoto user={self.user_id} status={self.status!r}>"
