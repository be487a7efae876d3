"""
Shared fixtures.

Each test gets its own SQLite file so that separate sessions use separate
connections, the way the services share one database in production. The
identity lookup is replaced by an in-memory table of cookies, which keeps
``require_caller`` itself in the request path.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.auth.identity import get_identity_client
from app.auth.schemas import CallerIdentity
from app.cards.models import Card, Deck
from app.database import Base, enable_sqlite_foreign_keys, get_db
from app.main import deck_app, sharing_app, study_app, user_app
from app.users.models import User


class FakeIdentityClient:
    """Resolves cookies it has issued; everything else is unauthenticated."""

    def __init__(self):
        self.callers = {}

    def issue(self, user: User) -> dict:
        cookie = f"sb.sid=test-session-{user.id}"
        self.callers[cookie] = CallerIdentity(id=user.id, email=user.email, name=user.name)
        return {"Cookie": cookie}

    def resolve_caller(self, cookie_header):
        return self.callers.get(cookie_header)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def identity():
    return FakeIdentityClient()


@pytest.fixture
def apps(session_factory, identity):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    services = (user_app, deck_app, study_app, sharing_app)
    for app in services:
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_identity_client] = lambda: identity
    yield services
    for app in services:
        app.dependency_overrides.clear()


@pytest.fixture
def user_client(apps):
    return TestClient(user_app)


@pytest.fixture
def deck_client(apps):
    return TestClient(deck_app)


@pytest.fixture
def study_client(apps):
    return TestClient(study_app)


@pytest.fixture
def sharing_client(apps):
    return TestClient(sharing_app)


@pytest.fixture
def make_user(db, identity):
    """Create a user row and return (user, headers carrying their session cookie)."""
    counter = {"n": 0}

    def _make(name=None):
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        user = User(email=f"{name}@example.com", name=name, password_hash="not-a-real-hash")
        db.add(user)
        db.commit()
        db.refresh(user)
        return user, identity.issue(user)

    return _make


@pytest.fixture
def make_deck(db):
    def _make(owner, title="Biology", is_public=False, cards=0, tags=None):
        deck = Deck(owner_id=owner.id, title=title, is_public=is_public, tags=tags)
        db.add(deck)
        db.flush()
        for i in range(cards):
            db.add(Card(deck_id=deck.id, question=f"Q{i}", answer=f"A{i}"))
        db.commit()
        db.refresh(deck)
        return deck

    return _make
