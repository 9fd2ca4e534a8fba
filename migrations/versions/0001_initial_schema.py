"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-16 00:00:00.000000

Unique constraints that back the engine's idempotency:
  couples.invite_code                         invite codes never collide
  game_sessions (couple_id, day)              one session per couple per day
  couple_stats.couple_id, streaks.couple_id   one aggregate row per couple
  user_achievements (user_id, achievement_id) one unlock per user
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    couple_status_enum = sa.Enum("pending", "active", "dissolved", name="couple_status_enum")
    couple_status_enum.create(op.get_bind(), checkfirst=True)

    session_status_enum = sa.Enum(
        "awaiting_first", "awaiting_second", "completed", name="session_status_enum"
    )
    session_status_enum.create(op.get_bind(), checkfirst=True)

    # --- couples ---
    op.create_table(
        "couples",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("partner_a_id", sa.String(64), nullable=False),
        sa.Column("partner_b_id", sa.String(64), nullable=True),
        sa.Column("status", sa.Enum(
            "pending", "active", "dissolved", name="couple_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("invite_code", sa.String(16), nullable=True),
        sa.Column("invite_code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("preferred_categories", sa.String(256), nullable=False),
        sa.Column("paired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dissolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invite_code"),
    )
    op.create_index("ix_couples_id", "couples", ["id"])
    op.create_index("ix_couples_partner_a_id", "couples", ["partner_a_id"])
    op.create_index("ix_couples_partner_b_id", "couples", ["partner_b_id"])

    # --- questions ---
    op.create_table(
        "questions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("difficulty", sa.String(16), nullable=False, server_default="easy"),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("options", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("for_couples", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("for_friends", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("for_family", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_questions_id", "questions", ["id"])
    op.create_index("ix_questions_category", "questions", ["category"])

    # --- game_sessions ---
    op.create_table(
        "game_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("couple_id", sa.Integer(), sa.ForeignKey("couples.id"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("question_id", sa.Integer(), sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("answer_a", sa.Integer(), nullable=True),
        sa.Column("answer_b", sa.Integer(), nullable=True),
        sa.Column("is_match", sa.Boolean(), nullable=True),
        sa.Column("status", sa.Enum(
            "awaiting_first", "awaiting_second", "completed",
            name="session_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("couple_id", "day", name="uq_game_session_couple_day"),
    )
    op.create_index("ix_game_sessions_id", "game_sessions", ["id"])
    op.create_index("ix_game_sessions_couple_id", "game_sessions", ["couple_id"])
    op.create_index("ix_game_sessions_day", "game_sessions", ["day"])

    # --- couple_stats ---
    op.create_table(
        "couple_stats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("couple_id", sa.Integer(), sa.ForeignKey("couples.id"), nullable=False),
        sa.Column("total_games", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_matches", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sync_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("couple_id"),
    )
    op.create_index("ix_couple_stats_id", "couple_stats", ["id"])

    # --- streaks ---
    op.create_table(
        "streaks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("couple_id", sa.Integer(), sa.ForeignKey("couples.id"), nullable=False),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_played_date", sa.Date(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("couple_id"),
    )
    op.create_index("ix_streaks_id", "streaks", ["id"])

    # --- user_achievements ---
    op.create_table(
        "user_achievements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("achievement_id", sa.String(64), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),
    )
    op.create_index("ix_user_achievements_id", "user_achievements", ["id"])
    op.create_index("ix_user_achievements_user_id", "user_achievements", ["user_id"])


def downgrade() -> None:
    op.drop_table("user_achievements")
    op.drop_table("streaks")
    op.drop_table("couple_stats")
    op.drop_table("game_sessions")
    op.drop_table("questions")
    op.drop_table("couples")
    op.execute("DROP TYPE IF EXISTS session_status_enum")
    op.execute("DROP TYPE IF EXISTS couple_status_enum")
