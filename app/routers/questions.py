"""
Couple-owned questions router.

POST   /couples/{couple_id}/questions                — add a question to the couple's pool
GET    /couples/{couple_id}/questions                — the couple's active questions
DELETE /couples/{couple_id}/questions/{question_id}  — retire one (soft delete)

They are picked for the daily session when "custom" is among the couple's
preferred categories.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.db.base import get_db
from app.models.question import Question
from app.schemas.question import (
    CreateCustomQuestionRequest,
    CustomQuestionListResponse,
    CustomQuestionResponse,
)
from app.services import questions as pool

router = APIRouter(prefix="/couples/{couple_id}/questions", tags=["questions"])


def question_to_response(q: Question) -> CustomQuestionResponse:
    return CustomQuestionResponse(
        id=q.id,
        couple_id=q.couple_id,
        category=q.category,
        question=q.question,
        options=pool.option_list(q),
        is_active=q.is_active,
        created_by=q.created_by,
        created_at=as_utc(q.created_at).isoformat() if q.created_at else "",
    )


@router.post(
    "",
    response_model=CustomQuestionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a custom question",
    responses={422: {"description": "Not a member, couple not active, or invalid question/options."}},
)
def create_question(
    couple_id: int, payload: CreateCustomQuestionRequest, db: Session = Depends(get_db)
):
    row = pool.create_custom_question(db, couple_id, payload.user_id, payload.question, payload.options)
    return question_to_response(row)


@router.get(
    "",
    response_model=CustomQuestionListResponse,
    summary="The couple's active custom questions, newest first",
)
def list_questions(
    couple_id: int,
    user_id: str = Query(min_length=1, max_length=64),
    db: Session = Depends(get_db),
):
    rows = pool.list_custom_questions(db, couple_id, user_id)
    return CustomQuestionListResponse(
        couple_id=couple_id,
        total=len(rows),
        items=[question_to_response(r) for r in rows],
    )


@router.delete(
    "/{question_id}",
    response_model=CustomQuestionResponse,
    summary="Retire a custom question",
    responses={404: {"description": "No such question in this couple."}},
)
def retire_question(
    couple_id: int,
    question_id: int,
    user_id: str = Query(min_length=1, max_length=64),
    db: Session = Depends(get_db),
):
    """Sessions that already used the question still show it."""
    return question_to_response(pool.retire_custom_question(db, couple_id, question_id, user_id))
