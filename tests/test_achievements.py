"""
Tests for the achievement engine.

Covers:
- Catalog shape and rule predicates
- Progress fractions
- Unlocks are recorded once per user; re-evaluation reports nothing new
- A concurrent unlock (unique-constraint rejection) is not reported as new
"""
import uuid

import pytest

from app.models.achievement import UnlockedAchievement
from app.services import achievements as engine
from app.services.stats import StatsSnapshot


def _snap(streak=0, games=0, matches=0, perfect=False):
    return StatsSnapshot(
        current_streak=streak,
        longest_streak=streak,
        total_games=games,
        total_matches=matches,
        sync_score=0,
        perfect_day=perfect,
    )


def _user():
    return f"ach-{uuid.uuid4().hex[:12]}"


class TestCatalog:
    def test_ids_unique(self):
        ids = [a.id for a in engine.list_catalog()]
        assert len(ids) == len(set(ids))

    def test_requirement_types_known(self):
        known = {
            engine.RequirementType.STREAK,
            engine.RequirementType.GAMES,
            engine.RequirementType.MATCHES,
            engine.RequirementType.SPECIAL,
        }
        assert {a.requirement_type for a in engine.list_catalog()} <= known

    def test_lookup(self):
        assert engine.get_achievement("streak_7").requirement_value == 7
        assert engine.get_achievement("does_not_exist") is None


class TestRules:
    @pytest.mark.parametrize("achievement_id,snapshot,expected", [
        ("first_sync", _snap(games=0), False),
        ("first_sync", _snap(games=1), True),
        ("first_match", _snap(games=3, matches=0), False),
        ("first_match", _snap(games=3, matches=1), True),
        ("perfect_day", _snap(games=1, matches=1, perfect=False), False),
        ("perfect_day", _snap(games=1, matches=1, perfect=True), True),
        ("streak_3", _snap(streak=2), False),
        ("streak_3", _snap(streak=3), True),
        ("streak_30", _snap(streak=29), False),
        ("games_10", _snap(games=10), True),
        ("matches_50", _snap(matches=49), False),
    ])
    def test_is_satisfied(self, achievement_id, snapshot, expected):
        assert engine.is_satisfied(engine.get_achievement(achievement_id), snapshot) is expected

    def test_progress_fraction(self):
        streak_7 = engine.get_achievement("streak_7")
        assert engine.get_progress(streak_7, _snap(streak=0)) == 0.0
        assert engine.get_progress(streak_7, _snap(streak=7)) == 1.0
        assert engine.get_progress(streak_7, _snap(streak=14)) == 1.0
        assert engine.get_progress(engine.get_achievement("games_10"), _snap(games=5)) == pytest.approx(0.5)


class TestCheckAndUnlock:
    def test_unlocks_all_satisfied(self, db):
        user = _user()
        newly = engine.check_and_unlock(db, user, _snap(streak=3, games=1, matches=1, perfect=True))
        assert {n.achievement.id for n in newly} == {"first_sync", "first_match", "perfect_day", "streak_3"}
        assert all(n.unlocked_at is not None for n in newly)

    def test_second_evaluation_reports_nothing(self, db):
        user = _user()
        snapshot = _snap(streak=3, games=1, matches=1)
        engine.check_and_unlock(db, user, snapshot)
        assert engine.check_and_unlock(db, user, snapshot) == []
        assert db.query(UnlockedAchievement).filter_by(user_id=user).count() == 3

    def test_only_new_rules_reported(self, db):
        user = _user()
        engine.check_and_unlock(db, user, _snap(games=1))
        newly = engine.check_and_unlock(db, user, _snap(games=10))
        assert [n.achievement.id for n in newly] == ["games_10"]

    def test_nothing_satisfied(self, db):
        assert engine.check_and_unlock(db, _user(), _snap()) == []

    def test_concurrent_unlock_not_reported(self, db, monkeypatch):
        user = _user()
        db.add(UnlockedAchievement(user_id=user, achievement_id="first_sync"))
        db.commit()
        # The evaluation read its owned set before the other writer committed.
        monkeypatch.setattr(engine, "get_unlocked", lambda session, user_id: [])
        newly = engine.check_and_unlock(db, user, _snap(games=1))
        assert newly == []
        assert db.query(UnlockedAchievement).filter_by(user_id=user).count() == 1

    def test_unlocked_ordered_oldest_first(self, db):
        user = _user()
        engine.check_and_unlock(db, user, _snap(games=1))
        engine.check_and_unlock(db, user, _snap(games=1, matches=1))
        rows = engine.get_unlocked(db, user)
        assert [r.achievement_id for r in rows] == ["first_sync", "first_match"]
