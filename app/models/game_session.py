"""
GameSession — one shared question per couple per calendar day.

The (couple_id, day) unique constraint is the idempotency guarantee for
lazy creation: concurrent creators race on the INSERT and the loser re-reads.

status: awaiting_first → awaiting_second → completed (immutable afterwards).
answer_a / answer_b: option index, NULL while unanswered.
is_match: NULL until completed.
"""
from datetime import datetime, date
import enum

from sqlalchemy import (
    Integer, Boolean, DateTime, Date, Enum, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.question import Question


class SessionStatus(str, enum.Enum):
    awaiting_first = "awaiting_first"
    awaiting_second = "awaiting_second"
    completed = "completed"


class GameSession(Base):
    __tablename__ = "game_sessions"
    __table_args__ = (
        UniqueConstraint("couple_id", "day", name="uq_game_session_couple_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    couple_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("couples.id"), nullable=False, index=True
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("questions.id"), nullable=False
    )
    answer_a: Mapped[int | None] = mapped_column(Integer, nullable=True)
    answer_b: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_match: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(SessionStatus, name="session_status_enum"),
        nullable=False,
        default=SessionStatus.awaiting_first,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    question: Mapped[Question] = relationship(Question, lazy="joined")
