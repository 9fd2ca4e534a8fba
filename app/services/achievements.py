"""
Achievement Engine.

The catalog is static. Each rule is a pure predicate over a StatsSnapshot
(current_streak, total_games, total_matches, perfect_day); no rule looks at
another rule's unlock, so evaluation order never matters.

Unlocks are append-only rows in `user_achievements`, unique on
(user_id, achievement_id). check_and_unlock first skips what the user already
has, then inserts each newly satisfied rule; a unique-constraint rejection
means a concurrent evaluation got there first and the rule is simply not
reported as new.

Requirement types
-----------------
  streak   — current_streak >= value
  games    — total_games    >= value
  matches  — total_matches  >= value
  special  — perfect_day (today's session matched)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.db.gateway import insert_if_absent, surfaces_unavailable
from app.models.achievement import UnlockedAchievement
from app.services.stats import StatsSnapshot

logger = logging.getLogger(__name__)


class RequirementType:
    STREAK = "streak"
    GAMES = "games"
    MATCHES = "matches"
    SPECIAL = "special"


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    icon: str
    requirement_type: str
    requirement_value: int


@dataclass
class NewlyUnlocked:
    achievement: Achievement
    unlocked_at: datetime


ACHIEVEMENT_CATALOG: tuple[Achievement, ...] = (
    Achievement("first_sync", "First Sync", "Complete your first daily sync together.", "sparkles", RequirementType.GAMES, 1),
    Achievement("first_match", "First Match", "Pick the same answer for the first time.", "heart", RequirementType.MATCHES, 1),
    Achievement("perfect_day", "Perfect Day", "Match on today's question.", "star", RequirementType.SPECIAL, 1),
    Achievement("streak_3", "Warming Up", "Play 3 days in a row.", "flame", RequirementType.STREAK, 3),
    Achievement("streak_7", "One Week Strong", "Play 7 days in a row.", "flame", RequirementType.STREAK, 7),
    Achievement("streak_30", "Unbreakable", "Play 30 days in a row.", "trophy", RequirementType.STREAK, 30),
    Achievement("games_10", "Getting to Know You", "Complete 10 daily syncs.", "chat", RequirementType.GAMES, 10),
    Achievement("games_50", "Regulars", "Complete 50 daily syncs.", "calendar", RequirementType.GAMES, 50),
    Achievement("games_100", "Centurions", "Complete 100 daily syncs.", "medal", RequirementType.GAMES, 100),
    Achievement("matches_10", "In Tune", "Match 10 times.", "music", RequirementType.MATCHES, 10),
    Achievement("matches_50", "Mind Readers", "Match 50 times.", "brain", RequirementType.MATCHES, 50),
    Achievement("matches_100", "Soulmates", "Match 100 times.", "infinity", RequirementType.MATCHES, 100),
)

_BY_ID = {a.id: a for a in ACHIEVEMENT_CATALOG}


def _measure(achievement: Achievement, snapshot: StatsSnapshot) -> int:
    if achievement.requirement_type == RequirementType.STREAK:
        return snapshot.current_streak
    if achievement.requirement_type == RequirementType.GAMES:
        return snapshot.total_games
    if achievement.requirement_type == RequirementType.MATCHES:
        return snapshot.total_matches
    if achievement.id == "perfect_day":
        return 1 if snapshot.perfect_day else 0
    return 0


def is_satisfied(achievement: Achievement, snapshot: StatsSnapshot) -> bool:
    return _measure(achievement, snapshot) >= achievement.requirement_value


def get_progress(achievement: Achievement, snapshot: StatsSnapshot) -> float:
    """Fraction 0.0–1.0 toward the requirement."""
    if achievement.requirement_value <= 0:
        return 1.0
    return min(_measure(achievement, snapshot) / achievement.requirement_value, 1.0)


def list_catalog() -> list[Achievement]:
    return list(ACHIEVEMENT_CATALOG)


def get_achievement(achievement_id: str) -> Achievement | None:
    return _BY_ID.get(achievement_id)


@surfaces_unavailable
def get_unlocked(db: Session, user_id: str) -> list[UnlockedAchievement]:
    return (
        db.query(UnlockedAchievement)
        .filter(UnlockedAchievement.user_id == user_id)
        .order_by(UnlockedAchievement.unlocked_at.asc(), UnlockedAchievement.id.asc())
        .all()
    )


@surfaces_unavailable
def check_and_unlock(db: Session, user_id: str, snapshot: StatsSnapshot) -> list[NewlyUnlocked]:
    """Insert an unlock for every satisfied rule the user lacks; return only the new ones."""
    owned = {row.achievement_id for row in get_unlocked(db, user_id)}
    newly: list[NewlyUnlocked] = []

    for achievement in ACHIEVEMENT_CATALOG:
        if achievement.id in owned or not is_satisfied(achievement, snapshot):
            continue
        row = UnlockedAchievement(user_id=user_id, achievement_id=achievement.id)
        if insert_if_absent(db, row):
            newly.append(NewlyUnlocked(achievement=achievement, unlocked_at=as_utc(row.unlocked_at)))
            logger.info("achievement unlocked user=%s achievement=%s", user_id, achievement.id)
        else:
            logger.debug("achievement %s already recorded for user=%s", achievement.id, user_id)

    return newly
