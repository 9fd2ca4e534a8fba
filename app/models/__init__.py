from .couple import Couple, CoupleStatus
from .membership import CoupleMember
from .question import Question, QuestionCategory
from .game_session import GameSession, SessionStatus
from .stats import CoupleStats, StreakRecord
from .achievement import UnlockedAchievement

__all__ = [
    "Couple",
    "CoupleStatus",
    "CoupleMember",
    "Question",
    "QuestionCategory",
    "GameSession",
    "SessionStatus",
    "CoupleStats",
    "StreakRecord",
    "UnlockedAchievement",
]
