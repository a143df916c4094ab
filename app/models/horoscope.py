"""
Vivaha — Horoscope model (Vedic chart summary, optional per user).
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.utils.dates import utcnow


class Horoscope(Base):
    __tablename__ = "horoscopes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    zodiac_sign: Mapped[str | None] = mapped_column(String, nullable=True)
    moon_sign: Mapped[str | None] = mapped_column(String, nullable=True)
    nakshatra: Mapped[str | None] = mapped_column(String, nullable=True)
    manglik: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    guna_milan_score: Mapped[float | None] = mapped_column(
        Float, nullable=True, comment="Precomputed Ashta Koot score out of 36"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="horoscope")

    def __repr__(self) -> str:
        return (
            f"<Horoscope user={self.user_id} zodiac={self.zodiac_sign!r} "
            f"manglik={self.manglik}>"
        )
