"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Every test pairs fresh users (uuid ids), so tests never share couples.
"""
import json
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.db.base import Base, get_db
from app.main import app
from app.models.question import Question
from app.services import pairing
from app.services.presence import InMemoryPresenceChannel, PresenceTracker, get_presence_tracker

SQLITE_URL = "sqlite:///./test_sync.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# (category, question, options, for_couples, for_friends, for_family)
_SEED_QUESTIONS = [
    ("daily_life", "Ideal Sunday morning?",            ["Sleep in", "Brunch out", "Workout", "Lazy coffee"], True, True,  True),
    ("daily_life", "Best weeknight dinner?",           ["Pasta", "Takeout", "Grill", "Cereal"],              True, True,  True),
    ("heart",      "Favourite way to say I love you?", ["Words", "Hugs", "Gifts", "Chores"],                 True, False, False),
    ("heart",      "Perfect date?",                    ["Dinner", "Picnic", "Adventure", "Night in"],        True, False, False),
    ("history",    "Where did we first meet?",         ["Work", "Friends", "Online", "Chance"],              True, False, False),
    ("fun",        "Shared superpower?",               ["Teleport", "Invisible", "Mind reading", "Time travel"], True, True, True),
    ("spice",      "Most romantic time of day?",       ["Morning", "Afternoon", "Evening", "Late night"],    True, False, False),
]


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    # Seed the question pool (normally done by Alembic migration)
    db = TestingSessionLocal()
    try:
        if db.query(Question).count() == 0:
            for category, text, options, couples, friends, family in _SEED_QUESTIONS:
                db.add(Question(
                    category=category,
                    difficulty="easy",
                    question=text,
                    options=json.dumps(options),
                    is_active=True,
                    for_couples=couples,
                    for_friends=friends,
                    for_family=family,
                ))
            db.commit()
    finally:
        db.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def tracker():
    return PresenceTracker(InMemoryPresenceChannel(), timeout_seconds=60)


@pytest.fixture()
def client(db, tracker):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_presence_tracker] = lambda: tracker
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def dev_overrides(monkeypatch):
    """Turn on ALLOW_DEV_OVERRIDES (off by default) for one test."""
    monkeypatch.setattr(settings, "ALLOW_DEV_OVERRIDES", True)
    monkeypatch.setattr(settings, "APP_ENV", "development")


def new_user(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def make_couple(db):
    """Factory: an active couple of two fresh users → (couple, partner_a, partner_b)."""

    def _make(categories=None):
        a, b = new_user("a"), new_user("b")
        invite = pairing.create_invite(db, a, categories=categories)
        couple = pairing.redeem_invite(db, b, invite.invite_code)
        return couple, a, b

    return _make
