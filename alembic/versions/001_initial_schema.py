"""Initial schema — matching core tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String, unique=True, index=True, nullable=False),
        sa.Column("first_name", sa.String, nullable=False),
        sa.Column("last_name", sa.String, nullable=True),
        sa.Column("gender", sa.String, nullable=False),
        sa.Column("date_of_birth", sa.Date, nullable=False),
        sa.Column("status", sa.String, server_default="active", nullable=False),
        sa.Column("profile_status", sa.String, server_default="pending", nullable=False),
        sa.Column("is_premium", sa.Boolean, server_default="false", nullable=False),
        sa.Column("premium_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "profile_completion_percentage",
            sa.Integer,
            server_default="0",
            nullable=False,
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_users_candidate_order",
        "users",
        ["is_premium", "last_active_at", "created_at"],
    )

    # ── 2. user_photos ──────────────────────────────────────────────
    op.create_table(
        "user_photos",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column("url", sa.String, nullable=False),
        sa.Column("status", sa.String, server_default="pending", nullable=False),
        sa.Column("is_profile_picture", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # ── 3. user_profiles ────────────────────────────────────────────
    op.create_table(
        "user_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        sa.Column("height_cm", sa.Integer, nullable=True),
        sa.Column("body_type", sa.String, nullable=True),
        sa.Column("physically_challenged", sa.Boolean, server_default="false", nullable=False),
        sa.Column("current_country", sa.String, nullable=True),
        sa.Column("current_state", sa.String, nullable=True),
        sa.Column("current_city", sa.String, nullable=True),
        sa.Column("education_level", sa.String, nullable=True),
        sa.Column("occupation", sa.String, nullable=True),
        sa.Column("annual_income_usd", sa.Integer, nullable=True),
        sa.Column("religion", sa.String, nullable=True),
        sa.Column("caste", sa.String, nullable=True),
        sa.Column("diet", sa.String, nullable=True),
        sa.Column("smoking", sa.String, nullable=True),
        sa.Column("drinking", sa.String, nullable=True),
        sa.Column("marital_status", sa.String, nullable=True),
        sa.Column("have_children", sa.Boolean, server_default="false", nullable=False),
        sa.Column("children_count", sa.Integer, server_default="0", nullable=False),
        sa.Column("family_type", sa.String, nullable=True),
        sa.Column("languages_known", postgresql.JSONB, nullable=True),
        sa.Column("hobbies", postgresql.JSONB, nullable=True),
        sa.Column("profile_verified", sa.Boolean, server_default="false", nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_user_profiles_country", "user_profiles", ["current_country"])
    op.create_index("ix_user_profiles_religion", "user_profiles", ["religion"])

    # ── 4. user_preferences ─────────────────────────────────────────
    op.create_table(
        "user_preferences",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        sa.Column("min_age", sa.Integer, server_default="18", nullable=False),
        sa.Column("max_age", sa.Integer, server_default="60", nullable=False),
        sa.Column("min_height_cm", sa.Integer, nullable=True),
        sa.Column("max_height_cm", sa.Integer, nullable=True),
        sa.Column("preferred_genders", postgresql.JSONB, nullable=True),
        sa.Column("preferred_countries", postgresql.JSONB, nullable=True),
        sa.Column("preferred_religions", postgresql.JSONB, nullable=True),
        sa.Column("preferred_castes", postgresql.JSONB, nullable=True),
        sa.Column("preferred_education_levels", postgresql.JSONB, nullable=True),
        sa.Column("preferred_occupations", postgresql.JSONB, nullable=True),
        sa.Column("preferred_marital_status", postgresql.JSONB, nullable=True),
        sa.Column("preferred_diets", postgresql.JSONB, nullable=True),
        sa.Column("preferred_smoking_habits", postgresql.JSONB, nullable=True),
        sa.Column("preferred_drinking_habits", postgresql.JSONB, nullable=True),
        sa.Column("min_income_usd", sa.Integer, nullable=True),
        sa.Column("max_income_usd", sa.Integer, nullable=True),
        sa.Column("accept_with_children", sa.Boolean, server_default="true", nullable=False),
        sa.Column("max_children_count", sa.Integer, nullable=True),
        sa.Column(
            "accept_physically_challenged", sa.Boolean, server_default="true", nullable=False
        ),
        sa.Column(
            "show_only_verified_profiles", sa.Boolean, server_default="false", nullable=False
        ),
        *_timestamps(),
    )

    # ── 5. horoscopes ───────────────────────────────────────────────
    op.create_table(
        "horoscopes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        sa.Column("zodiac_sign", sa.String, nullable=True),
        sa.Column("moon_sign", sa.String, nullable=True),
        sa.Column("nakshatra", sa.String, nullable=True),
        sa.Column("manglik", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "guna_milan_score",
            sa.Float,
            nullable=True,
            comment="Precomputed Ashta Koot score out of 36",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # ── 6. conversations ────────────────────────────────────────────
    op.create_table(
        "conversations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_one_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "user_two_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column("match_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("type", sa.String, server_default="match", nullable=False),
        sa.Column("status", sa.String, server_default="active", nullable=False),
        sa.Column("blocked_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("blocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # ── 7. user_matches ─────────────────────────────────────────────
    op.create_table(
        "user_matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "matched_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column("match_type", sa.String, nullable=False),
        sa.Column("status", sa.String, server_default="pending", index=True, nullable=False),
        sa.Column("user_action", sa.String, server_default="none", nullable=False),
        sa.Column("user_action_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("matched_user_action", sa.String, server_default="none", nullable=False),
        sa.Column("matched_user_action_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("compatibility_score", sa.Float, nullable=False),
        sa.Column("profile_score", sa.Float, nullable=True),
        sa.Column("preference_score", sa.Float, nullable=True),
        sa.Column("horoscope_score", sa.Float, nullable=True),
        sa.Column("activity_score", sa.Float, nullable=True),
        sa.Column("matching_factors", postgresql.JSONB, nullable=True),
        sa.Column("can_communicate", sa.Boolean, server_default="false", nullable=False),
        sa.Column("communication_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "conversation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("conversations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "matched_user_id", name="uq_user_match_pair"),
    )
    op.create_index(
        "ix_user_matches_pending_expiry",
        "user_matches",
        ["status", "expires_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_user_matches_pending_expiry", table_name="user_matches")
    op.drop_table("user_matches")
    op.drop_table("conversations")
    op.drop_table("horoscopes")
    op.drop_table("user_preferences")
    op.drop_index("ix_user_profiles_religion", table_name="user_profiles")
    op.drop_index("ix_user_profiles_country", table_name="user_profiles")
    op.drop_table("user_profiles")
    op.drop_table("user_photos")
    op.drop_index("ix_users_candidate_order", table_name="users")
    op.drop_table("users")
