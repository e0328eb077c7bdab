"""
Shared fixtures: in-memory database, API client and test data factories.
"""
import os

# Must be set before tago modules create the engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tago.models  # noqa: F401
from tago.core.security import create_access_token
from tago.db.base import Base
from tago.db.session import get_db, get_session_factory
from tago.main import app
from tago.models import ChatRoom, TaxiParty, User
from tago.services.connection_registry import ConnectionRegistry


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def registry():
    registry = ConnectionRegistry(timeout_seconds=60)
    yield registry
    registry.close_all()


@pytest.fixture
def client(session_factory, registry):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    previous_registry = app.state.connection_registry
    app.state.connection_registry = registry
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.connection_registry = previous_registry


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(name="슈니", **kwargs):
        counter["n"] += 1
        user = User(
            email=kwargs.pop("email", f"user{counter['n']}@sungshin.ac.kr"),
            name=name,
            short_student_id=kwargs.pop("short_student_id", "22"),
            # Factory users authenticate by token only
            hashed_password=kwargs.pop("hashed_password", "not-a-real-hash"),
            **kwargs
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_party(db):
    def _make_party(host, with_room=True, room_closed=False):
        party = TaxiParty(host_id=host.id, departure="성신여대 정문", destination="성신여대입구역")
        db.add(party)
        db.flush()
        if with_room:
            room = ChatRoom(taxi_party_id=party.id)
            if room_closed:
                room.close()
            db.add(room)
        db.commit()
        db.refresh(party)
        return party

    return _make_party


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token(data={"sub": user.email, "user_id": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
