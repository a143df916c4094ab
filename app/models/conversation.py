"""
Vivaha — Conversation model (chat thread opened by a mutual match).
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.utils.dates import utcnow


class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_one_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_two_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    # No FK: user_matches already references conversations.
    match_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    type: Mapped[str] = mapped_column(
        String, default="match", server_default="match", nullable=False
    )
    status: Mapped[str] = mapped_column(
        String, default="active", server_default="active", nullable=False,
        comment="active / blocked",
    )
    blocked_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    blocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def involves(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.user_one_id, self.user_two_id)

    def __repr__(self) -> str:
        return (
            f"<Conversation {self.user_one_id} <-> {self.user_two_id} "
            f"status={self.status!r}>"
        )
