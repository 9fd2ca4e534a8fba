"""
CoupleMember — one row per user per live (pending or active) couple.

UNIQUE(user_id) is what keeps a user in at most one live couple: the row is
written in the same transaction as the couple insert or the redemption CAS,
and deleted in the same transaction that dissolves the couple. A self-joined
couple has a single member row.
"""
from datetime import datetime

from sqlalchemy import Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class CoupleMember(Base):
    __tablename__ = "couple_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    couple_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("couples.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    couple = relationship("Couple", back_populates="members")
