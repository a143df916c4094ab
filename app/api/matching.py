"""
Vivaha — Matching API

Daily and ad-hoc suggestions, compatibility previews, the like / dislike /
block state machine, and per-user listings and statistics.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.user import User
from app.schemas.match import (
    ActionRequest,
    ActionResponse,
    CandidateListResponse,
    CompatibilityPreviewResponse,
    FindMatchesRequest,
    MatchRecordResponse,
    MatchStatisticsResponse,
    ScoredCandidateResponse,
)
from app.services.compatibility import ScoredCandidate
from app.services.match_actions import ActionOutcome
from app.services.matching_service import MatchingService

logger = structlog.get_logger("vivaha.api.matching")

router = APIRouter()

# ── Dependencies ──────────────────────────────────────────────────────────────


def get_matching_service(request: Request) -> MatchingService:
    """The application-wide service built by the lifespan."""
    return request.app.state.matching_service


async def _load_user(db: AsyncSession, user_id: uuid.UUID, label: str = "User") -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} ({user_id}) not found.",
        )
    return user


def _candidate_list(user_id: uuid.UUID, ranked: list[ScoredCandidate]) -> CandidateListResponse:
    return CandidateListResponse(
        user_id=user_id,
        count=len(ranked),
        matches=[ScoredCandidateResponse(**c.to_dict()) for c in ranked],
    )


def _action_response(outcome: ActionOutcome) -> ActionResponse:
    if not outcome.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=outcome.message)
    return ActionResponse(
        success=outcome.success,
        message=outcome.message,
        is_match=outcome.is_match,
        match_id=outcome.match_id,
        conversation_id=outcome.conversation_id,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Suggestions
# ──────────────────────────────────────────────────────────────────────────────


@router.get(
    "/{user_id}/daily",
    response_model=CandidateListResponse,
    summary="Today's match suggestions (cached per day)",
)
async def daily_matches(
    user_id: uuid.UUID,
    limit: int | None = Query(None, ge=1, le=100),
    refresh: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> CandidateListResponse:
    user = await _load_user(db, user_id)
    ranked = await service.generate_daily_matches(db, user, limit=limit, refresh=refresh)
    return _candidate_list(user_id, ranked)


@router.post(
    "/{user_id}/find",
    response_model=CandidateListResponse,
    summary="Ad-hoc match search (not cached)",
)
async def find_matches(
    user_id: uuid.UUID,
    body: FindMatchesRequest,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> CandidateListResponse:
    user = await _load_user(db, user_id)
    ranked = await service.find_matches(db, user, body.limit, context=body.type)
    return _candidate_list(user_id, ranked)


@router.get(
    "/{user_id}/premium",
    response_model=CandidateListResponse,
    summary="High-compatibility suggestions for premium members",
)
async def premium_suggestions(
    user_id: uuid.UUID,
    limit: int = Query(5, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> CandidateListResponse:
    user = await _load_user(db, user_id)
    if not user.is_premium_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Premium suggestions are available for premium members only",
        )
    ranked = await service.get_premium_suggestions(db, user, limit)
    return _candidate_list(user_id, ranked)


@router.get(
    "/{user_id}/compatibility/{target_id}",
    response_model=CompatibilityPreviewResponse,
    summary="Score one target without recording a match",
)
async def compatibility_preview(
    user_id: uuid.UUID,
    target_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> CompatibilityPreviewResponse:
    user = await _load_user(db, user_id)
    target = await _load_user(db, target_id, label="Target user")

    preview = service.preview_compatibility(user, target)
    if preview is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Target user ({target_id}) has no profile.",
        )
    return CompatibilityPreviewResponse(**preview)


# ──────────────────────────────────────────────────────────────────────────────
# Actions
# ──────────────────────────────────────────────────────────────────────────────


@router.post("/{user_id}/like", response_model=ActionResponse)
async def like(
    user_id: uuid.UUID,
    body: ActionRequest,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> ActionResponse:
    user = await _load_user(db, user_id)
    target = await _load_user(db, body.target_id, label="Target user")
    outcome = await service.process_like(db, user, target, is_super_like=False)
    logger.info("like_endpoint", user_id=str(user_id), success=outcome.success)
    return _action_response(outcome)


@router.post("/{user_id}/super-like", response_model=ActionResponse)
async def super_like(
    user_id: uuid.UUID,
    body: ActionRequest,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> ActionResponse:
    user = await _load_user(db, user_id)
    if not user.is_premium_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super likes are available for premium members only",
        )
    target = await _load_user(db, body.target_id, label="Target user")
    outcome = await service.process_like(db, user, target, is_super_like=True)
    return _action_response(outcome)


@router.post("/{user_id}/dislike", response_model=ActionResponse)
async def dislike(
    user_id: uuid.UUID,
    body: ActionRequest,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> ActionResponse:
    user = await _load_user(db, user_id)
    target = await _load_user(db, body.target_id, label="Target user")
    return _action_response(await service.process_dislike(db, user, target))


@router.post("/{user_id}/block", response_model=ActionResponse)
async def block(
    user_id: uuid.UUID,
    body: ActionRequest,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> ActionResponse:
    user = await _load_user(db, user_id)
    target = await _load_user(db, body.target_id, label="Target user")
    return _action_response(await service.process_block(db, user, target))


@router.post("/{user_id}/unblock", response_model=ActionResponse)
async def unblock(
    user_id: uuid.UUID,
    body: ActionRequest,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> ActionResponse:
    user = await _load_user(db, user_id)
    target = await _load_user(db, body.target_id, label="Target user")
    return _action_response(await service.process_unblock(db, user, target))


# ──────────────────────────────────────────────────────────────────────────────
# Listings
# ──────────────────────────────────────────────────────────────────────────────


@router.get("/{user_id}/liked-me", response_model=list[MatchRecordResponse])
async def who_liked_me(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> list[MatchRecordResponse]:
    user = await _load_user(db, user_id)
    rows = await service.get_who_liked_me(db, user)
    return [MatchRecordResponse.model_validate(row) for row in rows]


@router.get("/{user_id}/mutual", response_model=list[MatchRecordResponse])
async def mutual_matches(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> list[MatchRecordResponse]:
    user = await _load_user(db, user_id)
    rows = await service.get_mutual_matches(db, user)
    return [MatchRecordResponse.model_validate(row) for row in rows]


@router.get("/{user_id}/statistics", response_model=MatchStatisticsResponse)
async def match_statistics(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: MatchingService = Depends(get_matching_service),
) -> MatchStatisticsResponse:
    user = await _load_user(db, user_id)
    return MatchStatisticsResponse(**await service.get_match_statistics(db, user))
