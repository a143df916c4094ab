"""
Vivaha — Like / Mutual-Match State Machine

Per directed pair (initiator → target):

  pending ──► liked | super_liked | disliked | blocked
  liked | super_liked ──► mutual      (when the reverse row is also positive)
  pending ──► expired                 (time based, see expire_stale_matches)

Both rows of a pair mirror each other's action (``matched_user_action``) so
either row alone says whether the relationship is reciprocal.  Every
transition runs inside the caller's transaction and is serialised per
unordered pair: a transaction-scoped advisory lock on PostgreSQL plus
``SELECT … FOR UPDATE`` on both rows.  Find-or-create is an
``INSERT … ON CONFLICT DO NOTHING`` followed by a locking re-select, so two
concurrent reciprocal likes yield exactly one mutual flip and one
conversation.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import dialect_name, insert_ignore_duplicates
from app.models.match import MatchAction, MatchStatus, MatchType, UserMatch
from app.models.user import User
from app.services.compatibility import CompatibilityScorer
from app.services.conversation_service import ConversationService
from app.utils.dates import utcnow

logger = structlog.get_logger("vivaha.match_actions")

MATCH_MESSAGE = "It's a match! You can now start chatting."


@dataclass
class ActionOutcome:
    """Result of a user action; failures carry a machine ``reason``."""

    success: bool
    message: str
    reason: str | None = None
    is_match: bool = False
    match_id: uuid.UUID | None = None
    conversation_id: uuid.UUID | None = None

    @classmethod
    def rejected(cls, reason: str, message: str) -> "ActionOutcome":
        return cls(success=False, reason=reason, message=message)

    def to_dict(self) -> dict:
        return asdict(self)


def pair_lock_key(user_a: uuid.UUID, user_b: uuid.UUID) -> int:
    """Signed 64-bit advisory-lock key for the unordered pair."""
    low, high = sorted((str(user_a), str(user_b)))
    digest = hashlib.blake2b(f"{low}:{high}".encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class MatchActionService:
    """Applies like / super-like / dislike / block / unblock transitions."""

    def __init__(
        self,
        conversations: ConversationService | None = None,
        scorer: CompatibilityScorer | None = None,
    ) -> None:
        self.conversations = conversations or ConversationService()
        self.scorer = scorer or CompatibilityScorer()

    # ── Row access ────────────────────────────────────────────────────

    async def _lock_pair(
        self, db_session: AsyncSession, user_a: uuid.UUID, user_b: uuid.UUID
    ) -> None:
        if dialect_name(db_session) != "postgresql":
            return
        await db_session.execute(
            select(func.pg_advisory_xact_lock(pair_lock_key(user_a, user_b)))
        )

    async def _get_row(
        self,
        db_session: AsyncSession,
        user_id: uuid.UUID,
        matched_user_id: uuid.UUID,
    ) -> UserMatch | None:
        stmt = (
            select(UserMatch)
            .where(
                UserMatch.user_id == user_id,
                UserMatch.matched_user_id == matched_user_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await db_session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_or_create(
        self,
        db_session: AsyncSession,
        initiator: User,
        target: User,
        now: datetime,
    ) -> UserMatch:
        row = await self._get_row(db_session, initiator.id, target.id)
        if row is not None:
            return row

        quick = self.scorer.quick_score(initiator, target)
        stmt = insert_ignore_duplicates(
            db_session, UserMatch, ["user_id", "matched_user_id"]
        ).values(
            id=uuid.uuid4(),
            user_id=initiator.id,
            matched_user_id=target.id,
            match_type=MatchType.MUTUAL_INTEREST,
            status=MatchStatus.PENDING,
            user_action=MatchAction.NONE,
            matched_user_action=MatchAction.NONE,
            compatibility_score=quick,
            profile_score=quick,
            can_communicate=False,
            created_at=now,
        )
        await db_session.execute(stmt)
        row = await self._get_row(db_session, initiator.id, target.id)
        logger.debug(
            "match_row_created",
            user_id=str(initiator.id),
            matched_user_id=str(target.id),
            quick_score=quick,
        )
        return row

    @staticmethod
    def _mirror(forward: UserMatch, reverse: UserMatch | None, now: datetime) -> None:
        """Copy each side's own action onto the other row's mirror columns."""
        if reverse is None:
            return
        forward.matched_user_action = reverse.user_action
        forward.matched_user_action_at = reverse.user_action_at
        reverse.matched_user_action = forward.user_action
        reverse.matched_user_action_at = now

    @staticmethod
    def _break_mutual(row: UserMatch | None) -> None:
        """A mutual row whose counterpart turned negative falls back to its own action."""
        if row is None or row.status != MatchStatus.MUTUAL:
            return
        row.status = row.user_action
        row.can_communicate = False

    # ── Like / super-like ─────────────────────────────────────────────

    async def process_like(
        self,
        db_session: AsyncSession,
        initiator: User,
        target: User,
        is_super_like: bool = False,
    ) -> ActionOutcome:
        log = logger.bind(
            user_id=str(initiator.id),
            target_id=str(target.id),
            super_like=is_super_like,
        )

        if initiator.id == target.id:
            return ActionOutcome.rejected("self_action", "Cannot like your own profile")

        await self._lock_pair(db_session, initiator.id, target.id)
        reverse = await self._get_row(db_session, target.id, initiator.id)

        if reverse is not None and reverse.user_action == MatchAction.BLOCKED:
            log.info("like_rejected", reason="blocked")
            return ActionOutcome.rejected("blocked", "Cannot like blocked user")

        forward = await self._get_row(db_session, initiator.id, target.id)
        if forward is not None and forward.user_action in MatchAction.POSITIVE:
            log.info("like_rejected", reason="already_liked")
            return ActionOutcome.rejected("already_liked", "You have already liked this profile")

        now = utcnow()
        if forward is None:
            forward = await self._find_or_create(db_session, initiator, target, now)

        action = MatchAction.SUPER_LIKED if is_super_like else MatchAction.LIKED
        forward.user_action = action
        forward.user_action_at = now
        # Acted-upon rows no longer age out.
        forward.expires_at = None
        self._mirror(forward, reverse, now)

        if reverse is not None and reverse.user_action in MatchAction.POSITIVE:
            conversation_id = await self._make_mutual(db_session, initiator, forward, reverse, now)
            await db_session.flush()
            log.info(
                "mutual_match_created",
                match_id=str(forward.id),
                conversation_id=str(conversation_id),
            )
            return ActionOutcome(
                success=True,
                is_match=True,
                match_id=forward.id,
                conversation_id=conversation_id,
                message=MATCH_MESSAGE,
            )

        forward.status = action
        await db_session.flush()
        log.info("like_recorded", match_id=str(forward.id))
        return ActionOutcome(
            success=True,
            match_id=forward.id,
            message="Super like sent!" if is_super_like else "Like sent!",
        )

    async def _make_mutual(
        self,
        db_session: AsyncSession,
        initiator: User,
        forward: UserMatch,
        reverse: UserMatch,
        now: datetime,
    ) -> uuid.UUID:
        started_at = reverse.communication_started_at or now
        for row in (forward, reverse):
            row.status = MatchStatus.MUTUAL
            row.can_communicate = True
            row.communication_started_at = row.communication_started_at or started_at

        conversation_id = forward.conversation_id or reverse.conversation_id
        if conversation_id is None:
            conversation = await self.conversations.get_or_create_for_match(
                db_session, forward.user_id, forward.matched_user_id, forward.id
            )
            conversation_id = conversation.id
        else:
            await self.conversations.unblock(db_session, conversation_id, initiator.id)

        forward.conversation_id = conversation_id
        reverse.conversation_id = conversation_id
        return conversation_id

    # ── Dislike / block / unblock ─────────────────────────────────────

    async def process_dislike(
        self,
        db_session: AsyncSession,
        initiator: User,
        target: User,
    ) -> ActionOutcome:
        if initiator.id == target.id:
            return ActionOutcome.rejected("self_action", "Cannot dislike your own profile")

        await self._lock_pair(db_session, initiator.id, target.id)
        now = utcnow()
        forward = await self._find_or_create(db_session, initiator, target, now)
        reverse = await self._get_row(db_session, target.id, initiator.id)

        forward.user_action = MatchAction.DISLIKED
        forward.user_action_at = now
        forward.status = MatchStatus.DISLIKED
        forward.can_communicate = False
        forward.expires_at = now
        self._mirror(forward, reverse, now)
        self._break_mutual(reverse)

        await db_session.flush()
        logger.info("dislike_recorded", user_id=str(initiator.id), target_id=str(target.id))
        return ActionOutcome(success=True, match_id=forward.id, message="Profile passed")

    async def process_block(
        self,
        db_session: AsyncSession,
        initiator: User,
        target: User,
    ) -> ActionOutcome:
        if initiator.id == target.id:
            return ActionOutcome.rejected("self_action", "Cannot block yourself")

        await self._lock_pair(db_session, initiator.id, target.id)
        now = utcnow()
        forward = await self._find_or_create(db_session, initiator, target, now)
        reverse = await self._get_row(db_session, target.id, initiator.id)

        forward.user_action = MatchAction.BLOCKED
        forward.user_action_at = now
        forward.status = MatchStatus.BLOCKED
        forward.can_communicate = False
        self._mirror(forward, reverse, now)
        self._break_mutual(reverse)

        conversation_id = forward.conversation_id or (reverse.conversation_id if reverse else None)
        await self.conversations.block(db_session, conversation_id, initiator.id)

        await db_session.flush()
        logger.info("block_recorded", user_id=str(initiator.id), target_id=str(target.id))
        return ActionOutcome(success=True, match_id=forward.id, message="User blocked successfully")

    async def process_unblock(
        self,
        db_session: AsyncSession,
        initiator: User,
        target: User,
    ) -> ActionOutcome:
        """Lift a block the initiator placed; the pair returns to ``pending``."""
        await self._lock_pair(db_session, initiator.id, target.id)
        forward = await self._get_row(db_session, initiator.id, target.id)
        if forward is None or forward.user_action != MatchAction.BLOCKED:
            return ActionOutcome.rejected("not_blocked", "User is not blocked")

        now = utcnow()
        reverse = await self._get_row(db_session, target.id, initiator.id)
        forward.user_action = MatchAction.NONE
        forward.user_action_at = now
        forward.status = MatchStatus.PENDING
        self._mirror(forward, reverse, now)

        conversation_id = forward.conversation_id or (reverse.conversation_id if reverse else None)
        await self.conversations.unblock(db_session, conversation_id, initiator.id)

        await db_session.flush()
        logger.info("unblock_recorded", user_id=str(initiator.id), target_id=str(target.id))
        return ActionOutcome(success=True, match_id=forward.id, message="User unblocked")

    # ── Listings ──────────────────────────────────────────────────────

    async def get_mutual_matches(self, db_session: AsyncSession, user: User) -> list[UserMatch]:
        """One row per mutual relationship, the one owned by ``user``."""
        stmt = (
            select(UserMatch)
            .where(UserMatch.user_id == user.id, UserMatch.status == MatchStatus.MUTUAL)
            .order_by(UserMatch.communication_started_at.desc().nulls_last())
        )
        result = await db_session.execute(stmt)
        return list(result.scalars().all())

    async def get_who_liked_me(self, db_session: AsyncSession, user: User) -> list[UserMatch]:
        stmt = (
            select(UserMatch)
            .where(
                UserMatch.matched_user_id == user.id,
                UserMatch.user_action.in_(MatchAction.POSITIVE),
                UserMatch.matched_user_action == MatchAction.NONE,
            )
            .order_by(UserMatch.user_action_at.desc().nulls_last())
        )
        result = await db_session.execute(stmt)
        return list(result.scalars().all())
