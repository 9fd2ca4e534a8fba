from datetime import datetime
import enum

from sqlalchemy import Integer, String, Text, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class QuestionCategory(str, enum.Enum):
    daily_life = "daily_life"
    heart = "heart"
    history = "history"
    spice = "spice"
    fun = "fun"
    # Written by the couple themselves; see couple_id.
    custom = "custom"


class Question(Base):
    """
    A multiple-choice prompt. `options` is a JSON-encoded list of strings and
    must not change once a session references the question: answers are
    stored as option indices.

    couple_id is NULL for the shared pool. A couple's own questions carry its
    id, category "custom" and the author in created_by; they are only ever
    picked for that couple.
    """

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default="easy")
    question: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    for_couples: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    for_friends: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    for_family: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    couple_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("couples.id"), nullable=True, index=True
    )
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
