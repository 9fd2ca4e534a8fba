from typing import Optional

from pydantic import BaseModel, Field


class CoupleStatsResponse(BaseModel):
    couple_id: int
    total_games: int
    total_matches: int
    sync_score: int = Field(description="round(total_matches / total_games * 100)")
    current_streak: int
    longest_streak: int
    last_played_date: Optional[str]
