"""
Achievement schemas.

GET  /achievements/catalog          → list[AchievementResponse]
GET  /achievements/{user_id}        → UserAchievementsResponse
POST /achievements/{user_id}/check  → CheckAchievementsRequest → CheckAchievementsResponse
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    requirement_type: str
    requirement_value: int


class UnlockedAchievementResponse(BaseModel):
    achievement: AchievementResponse
    unlocked_at: str


class AchievementProgress(BaseModel):
    achievement: AchievementResponse
    unlocked: bool
    unlocked_at: Optional[str]
    progress: float = Field(ge=0.0, le=1.0)


class UserAchievementsResponse(BaseModel):
    user_id: str
    unlocked_count: int
    items: list[AchievementProgress]


class SnapshotIn(BaseModel):
    current_streak: int = Field(ge=0)
    total_games: int = Field(ge=0)
    total_matches: int = Field(ge=0)
    perfect_day: bool = False


class CheckAchievementsRequest(BaseModel):
    snapshot: Optional[SnapshotIn] = Field(
        default=None,
        description="Dev/test only (ALLOW_DEV_OVERRIDES): evaluate against this snapshot. Omit to use the user's couple stats.",
    )


class CheckAchievementsResponse(BaseModel):
    user_id: str
    newly_unlocked: list[UnlockedAchievementResponse]
