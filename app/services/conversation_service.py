"""Conversation lifecycle hooks invoked by the match state machine."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.conversation import Conversation
from app.utils.dates import utcnow

logger = structlog.get_logger("vivaha.conversation_service")


class ConversationService:
    async def find_for_pair(
        self,
        db_session: AsyncSession,
        user_a: uuid.UUID,
        user_b: uuid.UUID,
    ) -> Conversation | None:
        stmt = (
            select(Conversation)
            .where(
                or_(
                    and_(Conversation.user_one_id == user_a, Conversation.user_two_id == user_b),
                    and_(Conversation.user_one_id == user_b, Conversation.user_two_id == user_a),
                )
            )
            .order_by(Conversation.started_at.asc())
            .limit(1)
        )
        result = await db_session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create_for_match(
        self,
        db_session: AsyncSession,
        user_a: uuid.UUID,
        user_b: uuid.UUID,
        match_id: uuid.UUID,
    ) -> Conversation:
        """Reuse the pair's conversation if one exists, otherwise open one."""
        conversation = await self.find_for_pair(db_session, user_a, user_b)
        if conversation is not None:
            logger.debug("conversation_reused", conversation_id=str(conversation.id))
            return conversation

        conversation = Conversation(
            user_one_id=user_a,
            user_two_id=user_b,
            match_id=match_id,
            type="match",
            status="active",
        )
        db_session.add(conversation)
        await db_session.flush()
        logger.info(
            "conversation_created",
            conversation_id=str(conversation.id),
            match_id=str(match_id),
        )
        return conversation

    async def block(
        self,
        db_session: AsyncSession,
        conversation_id: uuid.UUID | None,
        blocked_by: uuid.UUID,
    ) -> None:
        if conversation_id is None:
            return
        conversation = await db_session.get(Conversation, conversation_id)
        if conversation is None:
            return
        if not conversation.involves(blocked_by):
            logger.warning(
                "conversation_block_by_outsider",
                conversation_id=str(conversation_id),
                user_id=str(blocked_by),
            )
            return
        conversation.status = "blocked"
        conversation.blocked_by = blocked_by
        conversation.blocked_at = utcnow()
        logger.info("conversation_blocked", conversation_id=str(conversation_id))

    async def unblock(
        self,
        db_session: AsyncSession,
        conversation_id: uuid.UUID | None,
        unblocked_by: uuid.UUID,
    ) -> bool:
        """Re-open a conversation, but only one this user blocked."""
        if conversation_id is None:
            return False
        conversation = await db_session.get(Conversation, conversation_id)
        if conversation is None or conversation.blocked_by != unblocked_by:
            return False
        conversation.status = "active"
        conversation.blocked_by = None
        conversation.blocked_at = None
        logger.info("conversation_unblocked", conversation_id=str(conversation_id))
        return True
