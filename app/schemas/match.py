from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime
from typing import Optional


class CandidateCard(BaseModel):
    first_name: Optional[str] = None
    age: Optional[int] = None
    city: Optional[str] = None
    country: Optional[str] = None
    religion: Optional[str] = None
    photo_url: Optional[str] = None


class ScoredCandidateResponse(BaseModel):
    user_id: UUID
    compatibility_score: float
    profile_score: float
    preference_score: float
    horoscope_score: float
    activity_score: float
    is_premium: bool = False
    matching_factors: list[str] = []
    card: CandidateCard = CandidateCard()


class CandidateListResponse(BaseModel):
    user_id: UUID
    count: int
    matches: list[ScoredCandidateResponse]


class FindMatchesRequest(BaseModel):
    limit: int = Field(20, ge=1, le=100)
    type: str = "search"  # search / daily / premium_suggestion


class DealBreakers(BaseModel):
    passes: bool
    failed: list[str] = []


class CompatibilityPreviewResponse(ScoredCandidateResponse):
    match_quality: str
    deal_breakers: DealBreakers


class ActionRequest(BaseModel):
    target_id: UUID


class ActionResponse(BaseModel):
    success: bool
    message: str
    is_match: bool = False
    match_id: Optional[UUID] = None
    conversation_id: Optional[UUID] = None


class MatchRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    matched_user_id: UUID
    match_type: str
    status: str
    user_action: str
    matched_user_action: str
    compatibility_score: float
    match_quality: str
    matching_factors: Optional[list[str]] = None
    can_communicate: bool
    conversation_id: Optional[UUID] = None
    user_action_at: Optional[datetime] = None
    communication_started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime


class MatchStatisticsResponse(BaseModel):
    total_matches: int
    mutual_matches: int
    pending_matches: int
    likes_sent: int
    likes_received: int
    super_likes_sent: int
    response_rate: float
