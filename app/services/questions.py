"""
Question pool: picks the daily question for a couple.

Shared pool filters: is_active, the configured audience flag (for_couples by
default) and the couple's preferred categories. When "custom" is among the
preferred categories (or none are given) the couple's own active questions
join the candidates. Uniform random choice among the rest.

Couple-owned questions
----------------------
create_custom_question(db, couple_id, user_id, question, options) -> Question
list_custom_questions(db, couple_id, user_id)                      -> list[Question]
retire_custom_question(db, couple_id, question_id, user_id)        -> Question

Options are never edited in place: answered sessions store option indices.
Retiring (is_active = false) takes a question out of future picks only.
"""
from __future__ import annotations

import json
import logging
import random
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    CoupleNotActiveError,
    InvalidCustomQuestionError,
    NoQuestionsAvailableError,
    QuestionNotFoundError,
)
from app.db.gateway import surfaces_unavailable
from app.models.couple import CoupleStatus
from app.models.question import Question, QuestionCategory
from app.services.pairing import get_couple, require_member

logger = logging.getLogger(__name__)

_AUDIENCE_COLUMNS = {
    "for_couples": Question.for_couples,
    "for_friends": Question.for_friends,
    "for_family": Question.for_family,
}

CUSTOM = QuestionCategory.custom.value

MIN_QUESTION_LENGTH = 5
MAX_QUESTION_LENGTH = 200
MAX_OPTION_LENGTH = 50
MIN_OPTIONS = 2
MAX_OPTIONS = 4


def option_list(question: Question) -> list[str]:
    try:
        result = json.loads(question.options)
    except (ValueError, TypeError):
        return []
    return result if isinstance(result, list) else []


def pick_question(
    db: Session,
    categories: list[str],
    audience: Optional[str] = None,
    rng: Optional[random.Random] = None,
    couple_id: Optional[int] = None,
) -> Question:
    audience_column = _AUDIENCE_COLUMNS.get(audience or settings.QUESTION_AUDIENCE, Question.for_couples)

    sources = []
    pooled = [c for c in categories or () if c != CUSTOM]
    if not categories or pooled:
        shared = and_(Question.couple_id.is_(None), audience_column == True)  # noqa: E712
        if pooled:
            shared = and_(shared, Question.category.in_(pooled))
        sources.append(shared)
    if couple_id is not None and (not categories or CUSTOM in categories):
        sources.append(Question.couple_id == couple_id)
    if not sources:
        raise NoQuestionsAvailableError(categories)

    q = db.query(Question.id).filter(Question.is_active == True, or_(*sources))  # noqa: E712
    ids = [row.id for row in q.order_by(Question.id).all()]
    if not ids:
        raise NoQuestionsAvailableError(categories)
    chosen = (rng or random).choice(ids)
    return db.get(Question, chosen)


# ---------------------------------------------------------------------------
# Couple-owned questions
# ---------------------------------------------------------------------------

def _clean_custom(question: str, options: list[str]) -> tuple[str, list[str]]:
    text = (question or "").strip()
    if not MIN_QUESTION_LENGTH <= len(text) <= MAX_QUESTION_LENGTH:
        raise InvalidCustomQuestionError(
            f"Question must be {MIN_QUESTION_LENGTH}-{MAX_QUESTION_LENGTH} characters."
        )
    cleaned = [o.strip() for o in options if o and o.strip()]
    if not MIN_OPTIONS <= len(cleaned) <= MAX_OPTIONS:
        raise InvalidCustomQuestionError(
            f"Provide between {MIN_OPTIONS} and {MAX_OPTIONS} answer options."
        )
    if any(len(o) > MAX_OPTION_LENGTH for o in cleaned):
        raise InvalidCustomQuestionError(
            f"Answer options are at most {MAX_OPTION_LENGTH} characters."
        )
    if len({o.lower() for o in cleaned}) != len(cleaned):
        raise InvalidCustomQuestionError("Each answer option must be unique.")
    return text, cleaned


@surfaces_unavailable
def create_custom_question(
    db: Session,
    couple_id: int,
    user_id: str,
    question: str,
    options: list[str],
) -> Question:
    couple = get_couple(db, couple_id)
    require_member(couple, user_id)
    if couple.status != CoupleStatus.active:
        raise CoupleNotActiveError(couple.id, str(getattr(couple.status, "value", couple.status)))
    text, cleaned = _clean_custom(question, options)

    row = Question(
        category=CUSTOM,
        difficulty="easy",
        question=text,
        options=json.dumps(cleaned),
        is_active=True,
        for_couples=True,
        couple_id=couple.id,
        created_by=user_id,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("custom question added couple=%s question=%s by=%s", couple.id, row.id, user_id)
    return row


@surfaces_unavailable
def list_custom_questions(db: Session, couple_id: int, user_id: str) -> list[Question]:
    """Active questions only, newest first."""
    couple = get_couple(db, couple_id)
    require_member(couple, user_id)
    return (
        db.query(Question)
        .filter(Question.couple_id == couple.id, Question.is_active == True)  # noqa: E712
        .order_by(Question.id.desc())
        .all()
    )


@surfaces_unavailable
def retire_custom_question(
    db: Session, couple_id: int, question_id: int, user_id: str
) -> Question:
    """Idempotent. Sessions that already used the question keep showing it."""
    couple = get_couple(db, couple_id)
    require_member(couple, user_id)
    row = db.get(Question, question_id)
    if row is None or row.couple_id != couple.id:
        raise QuestionNotFoundError(question_id=question_id, couple_id=couple.id)
    if row.is_active:
        row.is_active = False
        db.commit()
        db.refresh(row)
        logger.info("custom question retired couple=%s question=%s by=%s", couple.id, row.id, user_id)
    return row
