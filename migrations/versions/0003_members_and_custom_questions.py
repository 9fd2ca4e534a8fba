"""couple memberships and couple-owned questions

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-16 00:20:00.000000

couple_members.user_id is UNIQUE: a user holds at most one live
(pending or active) couple. Existing live couples are backfilled; the
upgrade fails if the data already breaks that rule and must be cleaned
up by hand first.

questions.couple_id is NULL for the shared pool and set for a couple's
own "custom" questions.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0003"
down_revision: Union[str, None] = "0002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- couple_members ---
    op.create_table(
        "couple_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("couple_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index("ix_couple_members_id", "couple_members", ["id"])
    op.create_index("ix_couple_members_couple_id", "couple_members", ["couple_id"])

    op.execute("""
        INSERT INTO couple_members (couple_id, user_id)
        SELECT id, partner_a_id FROM couples WHERE status IN ('pending', 'active')
    """)
    op.execute("""
        INSERT INTO couple_members (couple_id, user_id)
        SELECT id, partner_b_id FROM couples
        WHERE status = 'active' AND partner_b_id IS NOT NULL AND partner_b_id <> partner_a_id
    """)

    # --- couple-owned questions ---
    op.add_column("questions", sa.Column("couple_id", sa.Integer(), nullable=True))
    op.add_column("questions", sa.Column("created_by", sa.String(64), nullable=True))
    op.create_foreign_key("fk_questions_couple_id", "questions", "couples", ["couple_id"], ["id"])
    op.create_index("ix_questions_couple_id", "questions", ["couple_id"])


def downgrade() -> None:
    # Sessions may reference couple-owned questions, so they are retired, not deleted.
    op.execute("UPDATE questions SET is_active = false WHERE couple_id IS NOT NULL")
    op.drop_index("ix_questions_couple_id", table_name="questions")
    op.drop_constraint("fk_questions_couple_id", "questions", type_="foreignkey")
    op.drop_column("questions", "created_by")
    op.drop_column("questions", "couple_id")

    op.drop_index("ix_couple_members_couple_id", table_name="couple_members")
    op.drop_index("ix_couple_members_id", table_name="couple_members")
    op.drop_table("couple_members")
