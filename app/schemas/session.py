"""
Daily session schemas.

GET  /sessions/today         → SessionViewResponse
GET  /sessions/{id}          → SessionViewResponse
POST /sessions/{id}/answer   → SubmitAnswerRequest → SessionViewResponse
GET  /sessions/history       → SessionHistoryResponse
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.achievement import UnlockedAchievementResponse
from app.schemas.couple import UserRequest


class SubmitAnswerRequest(UserRequest):
    option_index: int = Field(ge=0, description="Zero-based index into the question's options.")


class QuestionResponse(BaseModel):
    id: int
    category: str
    difficulty: str
    question: str
    options: list[str]


class SessionViewResponse(BaseModel):
    id: int
    couple_id: int
    day: str
    status: str = Field(description='"awaiting_first" | "awaiting_second" | "completed"')
    phase: str = Field(description='"question" | "waiting" | "reveal" | "already_played"')
    question: QuestionResponse
    my_answer: Optional[int]
    partner_answer: Optional[int] = Field(description="Only revealed once the session is completed.")
    is_match: Optional[bool]
    completed_at: Optional[str]
    newly_unlocked: list[UnlockedAchievementResponse] = Field(default_factory=list)


class SessionSummary(BaseModel):
    id: int
    day: str
    status: str
    question_id: int
    is_match: Optional[bool]
    completed_at: Optional[str]


class SessionHistoryResponse(BaseModel):
    total: int
    items: list[SessionSummary]
