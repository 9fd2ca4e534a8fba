"""
Session Engine — the daily game state machine for a couple.

States
------
  none → awaiting_first → awaiting_second → completed

  none → awaiting_first
      get_or_create_today_session. Read (couple_id, day); if absent pick a
      question and INSERT. The unique constraint on (couple_id, day) decides
      concurrent creators; the loser re-reads and returns the winner's row.

  awaiting_first → awaiting_second
      submit_answer. One conditional UPDATE: "set my slot where my slot IS
      NULL and status != completed". A failed condition with the same stored
      value is a client retry and returns the stored state; a different
      stored value is AnswerAlreadySubmittedError.

  awaiting_second → completed
      Whoever observes both slots filled (the second submitter, or the
      waiting partner's poll via observe_session) runs the compare-and-swap
      "status = completed where status != completed". Only the winner of that
      CAS calls the Stats & Streak Aggregator, in the same transaction, so the
      counters move exactly once per session.

The second answer and the completion are committed together; no reader ever
sees both slots filled on a session that is not completed.

Public API
----------
get_or_create_today_session(db, couple_id, user_id, today) -> GameSession
submit_answer(db, session_id, user_id, option_index, now)  -> SessionView
observe_session(db, session_id, user_id, now)              -> SessionView
project_session(session, couple, viewer_id, completed_now) -> SessionView
list_sessions(db, couple_id, user_id, limit, offset)       -> tuple[int, list[GameSession]]
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.core.clock import as_utc, game_day, utcnow
from app.core.errors import (
    AnswerAlreadySubmittedError,
    CoupleNotActiveError,
    InvalidOptionError,
    SessionCreationConflictError,
    SessionNotFoundError,
)
from app.db.gateway import insert_if_absent, surfaces_unavailable, update_if
from app.models.couple import Couple, CoupleStatus
from app.models.game_session import GameSession, SessionStatus
from app.services import achievements as achievement_engine
from app.services.match import resolve_match
from app.services.notifications import NotificationEvent, Notifier, default_notifier
from app.services.pairing import get_couple, require_member
from app.services.presence import PresenceTracker, presence_tracker
from app.services.questions import option_list, pick_question
from app.services.stats import get_snapshot, on_session_completed

logger = logging.getLogger(__name__)


class Phase:
    QUESTION = "question"
    WAITING = "waiting"
    REVEAL = "reveal"
    ALREADY_PLAYED = "already_played"


@dataclass
class SessionView:
    """A session as one participant is allowed to see it."""
    session: GameSession
    viewer_id: str
    phase: str
    my_answer: Optional[int]
    partner_answer: Optional[int]   # hidden until completed
    is_match: Optional[bool]
    completed_now: bool = False
    newly_unlocked: list[achievement_engine.NewlyUnlocked] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _find_session(db: Session, couple_id: int, day: date) -> Optional[GameSession]:
    return (
        db.query(GameSession)
        .filter(GameSession.couple_id == couple_id, GameSession.day == day)
        .first()
    )


def _load_session(db: Session, session_id: int) -> GameSession:
    session = db.get(GameSession, session_id, populate_existing=True)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


def _slot_for(couple: Couple, user_id: str, session: GameSession) -> str:
    """'a' or 'b'. A self-joined couple (dev override) fills the first empty slot."""
    require_member(couple, user_id)
    if couple.partner_a_id == user_id and couple.partner_b_id == user_id:
        return "a" if session.answer_a is None else "b"
    return "a" if couple.partner_a_id == user_id else "b"


def _both_answered(session: GameSession) -> bool:
    return session.answer_a is not None and session.answer_b is not None


def project_session(
    session: GameSession,
    couple: Couple,
    viewer_id: str,
    completed_now: bool = False,
) -> SessionView:
    require_member(couple, viewer_id)
    if viewer_id == couple.partner_a_id:
        mine, theirs = session.answer_a, session.answer_b
    else:
        mine, theirs = session.answer_b, session.answer_a

    if session.status == SessionStatus.completed:
        phase = Phase.REVEAL if completed_now else Phase.ALREADY_PLAYED
        return SessionView(session, viewer_id, phase, mine, theirs, session.is_match, completed_now)

    phase = Phase.WAITING if mine is not None else Phase.QUESTION
    return SessionView(session, viewer_id, phase, mine, None, None, False)


def _complete(db: Session, session: GameSession, now: datetime) -> bool:
    """
    CAS to completed plus the aggregator. Returns True only for the caller
    that performed the transition. Does not commit.
    """
    is_match = resolve_match(session.answer_a, session.answer_b)
    won = update_if(
        db, GameSession,
        GameSession.id == session.id,
        GameSession.status != SessionStatus.completed,
        GameSession.answer_a.is_not(None),
        GameSession.answer_b.is_not(None),
        status=SessionStatus.completed,
        is_match=is_match,
        completed_at=now,
    )
    if not won:
        logger.debug("session %s already completed by the other side", session.id)
        return False
    on_session_completed(db, session.couple_id, is_match, session.day)
    logger.info("session completed id=%s couple=%s match=%s", session.id, session.couple_id, is_match)
    return True


def _unlock_for_participants(
    db: Session, couple: Couple, session: GameSession, viewer_id: str
) -> list[achievement_engine.NewlyUnlocked]:
    snapshot = get_snapshot(db, couple.id, perfect_day=bool(session.is_match), today=session.day)
    viewer_unlocks: list[achievement_engine.NewlyUnlocked] = []
    for participant in dict.fromkeys([couple.partner_a_id, couple.partner_b_id]):
        if participant is None:
            continue
        unlocked = achievement_engine.check_and_unlock(db, participant, snapshot)
        if participant == viewer_id:
            viewer_unlocks = unlocked
    return viewer_unlocks


def _notify_partner(
    couple: Couple,
    user_id: str,
    session: GameSession,
    now: datetime,
    presence: PresenceTracker,
    notifier: Notifier,
) -> None:
    partner_id = couple.partner_of(user_id)
    if partner_id is None or partner_id == user_id:
        return
    if not presence.should_notify(couple.id, partner_id, now):
        logger.debug("partner %s is on the daily screen, skipping notification", partner_id)
        return
    notifier.notify(
        partner_id,
        NotificationEvent.PARTNER_ANSWERED,
        {"couple_id": couple.id, "session_id": session.id, "day": str(session.day)},
    )


# ---------------------------------------------------------------------------
# getOrCreateTodaySession
# ---------------------------------------------------------------------------

@surfaces_unavailable
def get_or_create_today_session(
    db: Session,
    couple_id: int,
    user_id: Optional[str] = None,
    today: Optional[date] = None,
    rng: Optional[random.Random] = None,
) -> GameSession:
    """Exactly one session per couple per day, however many callers race here."""
    couple = get_couple(db, couple_id)
    if user_id is not None:
        require_member(couple, user_id)
    if couple.status != CoupleStatus.active:
        raise CoupleNotActiveError(couple_id, str(getattr(couple.status, "value", couple.status)))

    day = today or game_day()
    existing = _find_session(db, couple_id, day)
    if existing is not None:
        return existing

    question = pick_question(db, couple.category_list, rng=rng, couple_id=couple.id)
    session = GameSession(
        couple_id=couple_id,
        day=day,
        question_id=question.id,
        status=SessionStatus.awaiting_first,
    )
    if insert_if_absent(db, session):
        logger.info("session created id=%s couple=%s day=%s question=%s", session.id, couple_id, day, question.id)
        return session

    winner = _find_session(db, couple_id, day)
    if winner is None:
        raise SessionCreationConflictError(couple_id, day)
    logger.info("session creation race lost couple=%s day=%s, using id=%s", couple_id, day, winner.id)
    return winner


# ---------------------------------------------------------------------------
# submitAnswer
# ---------------------------------------------------------------------------

@surfaces_unavailable
def submit_answer(
    db: Session,
    session_id: int,
    user_id: str,
    option_index: int,
    now: Optional[datetime] = None,
    presence: Optional[PresenceTracker] = None,
    notifier: Optional[Notifier] = None,
) -> SessionView:
    now = as_utc(now) if now is not None else utcnow()
    presence = presence or presence_tracker
    notifier = notifier or default_notifier

    session = _load_session(db, session_id)
    couple = get_couple(db, session.couple_id)
    require_member(couple, user_id)

    # A retry against a finished session reads the result, whatever it sends.
    if session.status == SessionStatus.completed:
        return project_session(session, couple, user_id)

    option_count = len(option_list(session.question))
    if not 0 <= option_index < option_count:
        raise InvalidOptionError(option_index, option_count)

    slot = _slot_for(couple, user_id, session)
    slot_column = GameSession.answer_a if slot == "a" else GameSession.answer_b
    wrote = update_if(
        db, GameSession,
        GameSession.id == session_id,
        slot_column.is_(None),
        GameSession.status != SessionStatus.completed,
        **{f"answer_{slot}": option_index, "status": SessionStatus.awaiting_second},
    )

    if not wrote:
        db.rollback()
        session = _load_session(db, session_id)
        stored = getattr(session, f"answer_{slot}")
        if stored is not None and stored != option_index:
            raise AnswerAlreadySubmittedError(session_id, stored)
        logger.debug("duplicate answer from user=%s session=%s treated as retry", user_id, session_id)
        return observe_session(db, session_id, user_id, now=now)

    session = _load_session(db, session_id)
    completed_now = False
    if _both_answered(session):
        completed_now = _complete(db, session, now)
    db.commit()

    session = _load_session(db, session_id)
    view = project_session(session, couple, user_id, completed_now=completed_now)
    if completed_now:
        view.newly_unlocked = _unlock_for_participants(db, couple, session, user_id)
    else:
        logger.info("answer locked in session=%s user=%s", session_id, user_id)
        _notify_partner(couple, user_id, session, now, presence, notifier)
    return view


# ---------------------------------------------------------------------------
# Poll path
# ---------------------------------------------------------------------------

@surfaces_unavailable
def observe_session(
    db: Session,
    session_id: int,
    user_id: str,
    now: Optional[datetime] = None,
) -> SessionView:
    """
    Read a session for `user_id`. If both answers are in but the session is
    not completed yet, this observer performs the completion.
    """
    now = as_utc(now) if now is not None else utcnow()
    session = _load_session(db, session_id)
    couple = get_couple(db, session.couple_id)
    require_member(couple, user_id)

    if session.status == SessionStatus.completed or not _both_answered(session):
        return project_session(session, couple, user_id)

    completed_now = _complete(db, session, now)
    if completed_now:
        db.commit()
    else:
        db.rollback()
    session = _load_session(db, session_id)
    view = project_session(session, couple, user_id, completed_now=completed_now)
    if completed_now:
        view.newly_unlocked = _unlock_for_participants(db, couple, session, user_id)
    return view


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

@surfaces_unavailable
def list_sessions(
    db: Session,
    couple_id: int,
    user_id: str,
    limit: int = 30,
    offset: int = 0,
) -> tuple[int, list[GameSession]]:
    """Return (total, page) of the couple's sessions, newest day first."""
    couple = get_couple(db, couple_id)
    require_member(couple, user_id)
    q = db.query(GameSession).filter(GameSession.couple_id == couple_id)
    total = q.count()
    items = q.order_by(GameSession.day.desc()).offset(offset).limit(limit).all()
    return total, items
