"""
Stats & Streak Aggregator.

on_session_completed(db, couple_id, is_match, completion_date) runs inside the
transaction that moved a GameSession to `completed`; it never commits.

CoupleStats
  total_games   += 1
  total_matches += 1 if is_match
  sync_score     = round(total_matches / total_games * 100), half-up

StreakRecord (STREAK_POLICY)
  any_completed — every completed session counts as a played day
  matched_only  — only matched sessions extend the streak; a miss resets it to 0

  last_played_date == completion_date - 1  → current_streak + 1
  last_played_date == completion_date      → already counted, nothing applied
  anything else                            → current_streak = 1
  longest_streak = max(longest_streak, current_streak)

Reads: a streak whose last_played_date is older than yesterday has lapsed;
current_streak_on() reports it as 0 without writing. The stored value is
only replaced by the next completion (which restarts it at 1).

Idempotency: the streak row is written with a compare-and-swap on the
last_played_date / current_streak values it was computed from. A row that
already carries completion_date short-circuits the whole update, stats
included. Counters are incremented in SQL, never read-modify-written.

Public API
----------
on_session_completed(db, couple_id, is_match, completion_date)      -> bool
compute_sync_score(total_matches, total_games)                      -> int
next_streak(current, longest, last_played, day, is_match, policy)   -> tuple[int, int]
get_stats(db, couple_id)                                            -> CoupleStats
current_streak_on(streak, today)                                    -> int
get_streak(db, couple_id)                                           -> StreakRecord
get_snapshot(db, couple_id, perfect_day, today)                     -> StatsSnapshot
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ConflictError
from app.db.gateway import surfaces_unavailable, update_if
from app.models.stats import CoupleStats, StreakRecord

logger = logging.getLogger(__name__)

_STREAK_CAS_ATTEMPTS = 3


class StreakPolicy:
    ANY_COMPLETED = "any_completed"
    MATCHED_ONLY = "matched_only"


@dataclass
class StatsSnapshot:
    """Input of the Achievement Engine."""
    current_streak: int
    longest_streak: int
    total_games: int
    total_matches: int
    sync_score: int
    perfect_day: bool = False


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def compute_sync_score(total_matches: int, total_games: int) -> int:
    if total_games <= 0:
        return 0
    score = Decimal(total_matches) * 100 / Decimal(total_games)
    return int(score.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def next_streak(
    current_streak: int,
    longest_streak: int,
    last_played_date: Optional[date],
    completion_date: date,
    is_match: bool,
    policy: Optional[str] = None,
) -> tuple[int, int]:
    """Return (current_streak, longest_streak) after one completed session."""
    policy = policy or settings.STREAK_POLICY
    if last_played_date == completion_date:
        return current_streak, longest_streak

    if policy == StreakPolicy.MATCHED_ONLY and not is_match:
        return 0, longest_streak

    if last_played_date is not None and last_played_date == completion_date - timedelta(days=1):
        current = current_streak + 1
    else:
        current = 1
    return current, max(longest_streak, current)


def current_streak_on(streak: StreakRecord, today: date) -> int:
    """The streak as of `today`: 0 once a whole day has passed without play."""
    last = streak.last_played_date
    if last is None or last < today - timedelta(days=1):
        return 0
    return streak.current_streak


# ---------------------------------------------------------------------------
# Row access
# ---------------------------------------------------------------------------

def _load_rows(
    db: Session, couple_id: int
) -> tuple[Optional[CoupleStats], Optional[StreakRecord]]:
    stats = (
        db.query(CoupleStats)
        .filter(CoupleStats.couple_id == couple_id)
        .populate_existing()
        .first()
    )
    streak = (
        db.query(StreakRecord)
        .filter(StreakRecord.couple_id == couple_id)
        .populate_existing()
        .first()
    )
    return stats, streak


def _ensure_rows(db: Session, couple_id: int) -> tuple[CoupleStats, StreakRecord]:
    """Rows are provisioned on redemption; this only covers couples that predate it."""
    stats, streak = _load_rows(db, couple_id)
    if stats is None:
        stats = CoupleStats(couple_id=couple_id, total_games=0, total_matches=0, sync_score=0)
        db.add(stats)
    if streak is None:
        streak = StreakRecord(couple_id=couple_id, current_streak=0, longest_streak=0)
        db.add(streak)
    db.flush()
    return stats, streak


# ---------------------------------------------------------------------------
# onSessionCompleted
# ---------------------------------------------------------------------------

def on_session_completed(
    db: Session,
    couple_id: int,
    is_match: bool,
    completion_date: date,
) -> bool:
    """Apply one completed session. Returns False if this date was already counted."""
    stats, streak = _ensure_rows(db, couple_id)

    for _ in range(_STREAK_CAS_ATTEMPTS):
        seen_date = streak.last_played_date
        seen_streak = streak.current_streak
        if seen_date == completion_date:
            logger.info("stats already applied couple=%s date=%s", couple_id, completion_date)
            return False
        current, longest = next_streak(
            seen_streak,
            streak.longest_streak,
            seen_date,
            completion_date,
            is_match,
        )
        date_guard = (
            StreakRecord.last_played_date.is_(None)
            if seen_date is None
            else StreakRecord.last_played_date == seen_date
        )
        if update_if(
            db, StreakRecord,
            StreakRecord.id == streak.id,
            date_guard,
            StreakRecord.current_streak == seen_streak,
            current_streak=current,
            longest_streak=longest,
            last_played_date=completion_date,
        ):
            break
        db.refresh(streak)
    else:
        raise ConflictError(
            message="Streak record kept changing during the update.",
            details={"couple_id": couple_id, "date": str(completion_date)},
        )

    update_if(
        db, CoupleStats,
        CoupleStats.id == stats.id,
        total_games=CoupleStats.total_games + 1,
        total_matches=CoupleStats.total_matches + (1 if is_match else 0),
    )
    db.refresh(stats)
    stats.sync_score = compute_sync_score(stats.total_matches, stats.total_games)
    db.flush()
    db.refresh(streak)
    logger.info(
        "stats updated couple=%s games=%d matches=%d streak=%d",
        couple_id, stats.total_games, stats.total_matches, streak.current_streak,
    )
    return True


# ---------------------------------------------------------------------------
# Read accessors
# ---------------------------------------------------------------------------

@surfaces_unavailable
def get_stats(db: Session, couple_id: int) -> CoupleStats:
    stats, _ = _load_rows(db, couple_id)
    if stats is None:
        return CoupleStats(couple_id=couple_id, total_games=0, total_matches=0, sync_score=0)
    return stats


@surfaces_unavailable
def get_streak(db: Session, couple_id: int) -> StreakRecord:
    _, streak = _load_rows(db, couple_id)
    if streak is None:
        return StreakRecord(couple_id=couple_id, current_streak=0, longest_streak=0)
    return streak


@surfaces_unavailable
def get_snapshot(
    db: Session,
    couple_id: int,
    perfect_day: bool = False,
    today: Optional[date] = None,
) -> StatsSnapshot:
    """`today` applies the lapse rule; None reports the stored streak as is."""
    stats = get_stats(db, couple_id)
    streak = get_streak(db, couple_id)
    return StatsSnapshot(
        current_streak=streak.current_streak if today is None else current_streak_on(streak, today),
        longest_streak=streak.longest_streak,
        total_games=stats.total_games,
        total_matches=stats.total_matches,
        sync_score=stats.sync_score,
        perfect_day=perfect_day,
    )
