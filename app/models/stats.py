"""
Running per-couple aggregates. Written only by app/services/stats.py, in the
same transaction that moves a GameSession to completed.
"""
from datetime import datetime, date

from sqlalchemy import Integer, DateTime, Date, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class CoupleStats(Base):
    __tablename__ = "couple_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    couple_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("couples.id"), nullable=False, unique=True
    )
    total_games: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_matches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # round(total_matches / total_games * 100), 0 when no games
    sync_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class StreakRecord(Base):
    __tablename__ = "streaks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    couple_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("couples.id"), nullable=False, unique=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_played_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
