"""
Couple-owned question schemas.

POST   /couples/{id}/questions          → CreateCustomQuestionRequest → CustomQuestionResponse
GET    /couples/{id}/questions          →                               CustomQuestionListResponse
DELETE /couples/{id}/questions/{qid}    →                               CustomQuestionResponse
"""
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, Field

from app.schemas.couple import UserRequest


class CreateCustomQuestionRequest(UserRequest):
    question: Annotated[str, Field(
        min_length=1,
        max_length=400,
        description="Prompt text, 5-200 characters once trimmed.",
        examples=["Who said I love you first?"],
    )]
    options: list[str] = Field(
        max_length=10,
        description="2-4 distinct answers, at most 50 characters each. Blank entries are dropped.",
        examples=[["Me", "You", "Same moment"]],
    )


class CustomQuestionResponse(BaseModel):
    id: int
    couple_id: int
    category: str
    question: str
    options: list[str]
    is_active: bool
    created_by: Optional[str]
    created_at: str


class CustomQuestionListResponse(BaseModel):
    couple_id: int
    total: int
    items: list[CustomQuestionResponse]
