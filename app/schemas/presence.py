"""
Presence schemas.

POST /presence/heartbeat     → HeartbeatRequest → PresenceResponse
GET  /presence/{couple_id}   →                    PartnerPresenceResponse
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.schemas.couple import UserRequest


class HeartbeatRequest(UserRequest):
    couple_id: int
    status: Optional[Literal["online", "playing", "offline"]] = Field(
        default=None,
        description="Omit to keep the last reported status.",
    )
    current_screen: Optional[str] = Field(default=None, max_length=64, examples=["daily", "home"])


class PresenceResponse(BaseModel):
    couple_id: int
    user_id: str
    status: str
    current_screen: Optional[str]
    last_seen_at: Optional[str]


class PartnerPresenceResponse(BaseModel):
    partner: Optional[PresenceResponse]
    heartbeat_seconds: int
    timeout_seconds: int
