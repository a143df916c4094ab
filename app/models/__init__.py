"""
Vivaha — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.user import User, UserPhoto
from app.models.profile import UserProfile
from app.models.preference import UserPreference
from app.models.horoscope import Horoscope
from app.models.conversation import Conversation
from app.models.match import MatchAction, MatchStatus, MatchType, UserMatch

__all__ = [
    "User",
    "UserPhoto",
    "UserProfile",
    "UserPreference",
    "Horoscope",
    "Conversation",
    "UserMatch",
    "MatchAction",
    "MatchStatus",
    "MatchType",
]
