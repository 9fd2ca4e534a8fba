"""
Daily sessions router.

GET  /sessions/today          — get or lazily create today's session
GET  /sessions/history        — past sessions, newest first
GET  /sessions/{id}           — poll a session (completes it if both answered)
POST /sessions/{id}/answer    — lock in an answer
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.db.base import get_db
from app.models.game_session import GameSession
from app.routers.achievements import unlocked_to_response
from app.schemas.session import (
    QuestionResponse,
    SessionHistoryResponse,
    SessionSummary,
    SessionViewResponse,
    SubmitAnswerRequest,
)
from app.services import session_engine
from app.services.pairing import get_couple
from app.services.presence import PresenceTracker, get_presence_tracker
from app.services.questions import option_list

router = APIRouter(prefix="/sessions", tags=["sessions"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _ev(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def _view_to_response(view: session_engine.SessionView) -> SessionViewResponse:
    s = view.session
    q = s.question
    return SessionViewResponse(
        id=s.id,
        couple_id=s.couple_id,
        day=str(s.day),
        status=_ev(s.status),
        phase=view.phase,
        question=QuestionResponse(
            id=q.id,
            category=q.category,
            difficulty=q.difficulty,
            question=q.question,
            options=option_list(q),
        ),
        my_answer=view.my_answer,
        partner_answer=view.partner_answer,
        is_match=view.is_match,
        completed_at=as_utc(s.completed_at).isoformat() if s.completed_at else None,
        newly_unlocked=[unlocked_to_response(n) for n in view.newly_unlocked],
    )


def _summary(s: GameSession) -> SessionSummary:
    return SessionSummary(
        id=s.id,
        day=str(s.day),
        status=_ev(s.status),
        question_id=s.question_id,
        is_match=s.is_match,
        completed_at=as_utc(s.completed_at).isoformat() if s.completed_at else None,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/today",
    response_model=SessionViewResponse,
    summary="Today's session for the couple (created on first access)",
    responses={
        404: {"description": "Couple not found or no questions match its categories."},
        422: {"description": "Couple not active, or caller not a member."},
    },
)
def today_session(
    couple_id: int = Query(),
    user_id: str = Query(min_length=1, max_length=64),
    db: Session = Depends(get_db),
):
    """Both partners may call this at the same moment; they get the same session."""
    session = session_engine.get_or_create_today_session(db, couple_id, user_id=user_id)
    couple = get_couple(db, couple_id)
    return _view_to_response(session_engine.project_session(session, couple, user_id))


@router.get(
    "/history",
    response_model=SessionHistoryResponse,
    summary="Past sessions for a couple",
)
def session_history(
    couple_id: int = Query(),
    user_id: str = Query(min_length=1, max_length=64),
    limit: int = Query(default=30, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    db: Session = Depends(get_db),
):
    total, items = session_engine.list_sessions(db, couple_id, user_id, limit=limit, offset=offset)
    return SessionHistoryResponse(total=total, items=[_summary(s) for s in items])


@router.get(
    "/{session_id}",
    response_model=SessionViewResponse,
    summary="Read a session as one participant",
)
def get_session(
    session_id: int,
    user_id: str = Query(min_length=1, max_length=64),
    db: Session = Depends(get_db),
):
    """Polling fallback for the waiting partner."""
    return _view_to_response(session_engine.observe_session(db, session_id, user_id))


@router.post(
    "/{session_id}/answer",
    response_model=SessionViewResponse,
    summary="Lock in an answer",
    responses={
        404: {"description": "Session not found."},
        422: {"description": "Option out of range, different answer already stored, or not a member."},
    },
)
def submit_answer(
    session_id: int,
    payload: SubmitAnswerRequest,
    db: Session = Depends(get_db),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """
    Retrying with the same option is a no-op that returns the stored state.
    The call that fills the second slot gets `phase="reveal"`.
    """
    view = session_engine.submit_answer(
        db, session_id, payload.user_id, payload.option_index, presence=presence
    )
    return _view_to_response(view)
