"""
Couple — the paired-identity aggregate.

Lifecycle:
  pending   — partner_a created an invite; partner_b is NULL, invite_code set
  active    — partner_b redeemed the code; invite_code cleared (single-use)
  dissolved — soft delete, kept for audit

preferred_categories: comma-separated question category tags (never empty).
members: the couple_members rows that claim each partner while the couple is live.
"""
from datetime import datetime
import enum

from sqlalchemy import Integer, String, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class CoupleStatus(str, enum.Enum):
    pending = "pending"
    active = "active"
    dissolved = "dissolved"


class Couple(Base):
    __tablename__ = "couples"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    partner_a_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    partner_b_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        Enum(CoupleStatus, name="couple_status_enum"),
        nullable=False,
        default=CoupleStatus.pending,
    )
    invite_code: Mapped[str | None] = mapped_column(String(16), nullable=True, unique=True)
    invite_code_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    preferred_categories: Mapped[str] = mapped_column(String(256), nullable=False)
    paired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dissolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    members = relationship("CoupleMember", back_populates="couple", cascade="all, delete-orphan")

    @property
    def category_list(self) -> list[str]:
        return [c for c in self.preferred_categories.split(",") if c]

    def is_member(self, user_id: str) -> bool:
        return user_id in (self.partner_a_id, self.partner_b_id)

    def partner_of(self, user_id: str) -> str | None:
        if user_id == self.partner_a_id:
            return self.partner_b_id
        if user_id == self.partner_b_id:
            return self.partner_a_id
        return None
