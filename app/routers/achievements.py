"""
Achievements router.

GET  /achievements/catalog          — every achievement definition
GET  /achievements/{user_id}        — unlocked state + progress per achievement
POST /achievements/{user_id}/check  — evaluate rules and record new unlocks
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.clock import as_utc, game_day
from app.core.config import settings
from app.core.errors import CoupleNotFoundError, InvalidOperationError
from app.db.base import get_db
from app.models.couple import CoupleStatus
from app.models.game_session import GameSession, SessionStatus
from app.schemas.achievement import (
    AchievementProgress,
    AchievementResponse,
    CheckAchievementsRequest,
    CheckAchievementsResponse,
    UnlockedAchievementResponse,
    UserAchievementsResponse,
)
from app.services import achievements as engine
from app.services.pairing import get_couple_for_user
from app.services.stats import StatsSnapshot, get_snapshot

router = APIRouter(prefix="/achievements", tags=["achievements"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def achievement_to_response(a: engine.Achievement) -> AchievementResponse:
    return AchievementResponse(
        id=a.id,
        name=a.name,
        description=a.description,
        icon=a.icon,
        requirement_type=a.requirement_type,
        requirement_value=a.requirement_value,
    )


def unlocked_to_response(item: engine.NewlyUnlocked) -> UnlockedAchievementResponse:
    return UnlockedAchievementResponse(
        achievement=achievement_to_response(item.achievement),
        unlocked_at=as_utc(item.unlocked_at).isoformat(),
    )


def _couple_snapshot(db: Session, user_id: str) -> StatsSnapshot:
    """Snapshot of the user's active couple; all zeros when unpaired."""
    try:
        couple = get_couple_for_user(db, user_id)
    except CoupleNotFoundError:
        couple = None
    if couple is None or couple.status != CoupleStatus.active:
        return StatsSnapshot(0, 0, 0, 0, 0, False)
    day = game_day()
    played = (
        db.query(GameSession)
        .filter(
            GameSession.couple_id == couple.id,
            GameSession.day == day,
            GameSession.status == SessionStatus.completed,
        )
        .first()
    )
    return get_snapshot(db, couple.id, perfect_day=bool(played and played.is_match), today=day)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/catalog",
    response_model=list[AchievementResponse],
    summary="All achievement definitions",
)
def catalog():
    return [achievement_to_response(a) for a in engine.list_catalog()]


@router.get(
    "/{user_id}",
    response_model=UserAchievementsResponse,
    summary="Unlocked achievements and progress toward the rest",
)
def user_achievements(user_id: str, db: Session = Depends(get_db)):
    unlocked = {row.achievement_id: row for row in engine.get_unlocked(db, user_id)}
    snapshot = _couple_snapshot(db, user_id)
    items = []
    for a in engine.list_catalog():
        row = unlocked.get(a.id)
        items.append(AchievementProgress(
            achievement=achievement_to_response(a),
            unlocked=row is not None,
            unlocked_at=as_utc(row.unlocked_at).isoformat() if row else None,
            progress=1.0 if row else engine.get_progress(a, snapshot),
        ))
    return UserAchievementsResponse(user_id=user_id, unlocked_count=len(unlocked), items=items)


@router.post(
    "/{user_id}/check",
    response_model=CheckAchievementsResponse,
    summary="Evaluate achievement rules for a user",
)
def check(
    user_id: str,
    payload: Optional[CheckAchievementsRequest] = None,
    db: Session = Depends(get_db),
):
    """
    Unlock every rule the snapshot satisfies that the user does not own yet.
    Safe to call repeatedly: only first-time unlocks are returned.

    A client-supplied snapshot is honoured only with dev overrides enabled;
    otherwise the user's couple stats are the only input.
    """
    if payload and payload.snapshot:
        if not settings.dev_overrides_enabled:
            raise InvalidOperationError(message="snapshot overrides are disabled in this environment.")
        s = payload.snapshot
        snapshot = StatsSnapshot(
            current_streak=s.current_streak,
            longest_streak=s.current_streak,
            total_games=s.total_games,
            total_matches=s.total_matches,
            sync_score=0,
            perfect_day=s.perfect_day,
        )
    else:
        snapshot = _couple_snapshot(db, user_id)
    newly = engine.check_and_unlock(db, user_id, snapshot)
    return CheckAchievementsResponse(
        user_id=user_id,
        newly_unlocked=[unlocked_to_response(n) for n in newly],
    )
