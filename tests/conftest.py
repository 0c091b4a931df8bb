import itertools
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tournex.api.dependencies import get_db
from tournex.core.database import init_db, utcnow
from tournex.core.security import create_access_token
from tournex.main import app
from tournex.models import Tournament, User
from tournex.models.enums import TournamentStatus, UserRole
from tournex.services import bracket_service, participant_service


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(name=None, role=UserRole.PLAYER.value):
        n = next(counter)
        user = User(name=name or f"player{n}", email=f"user{n}@example.com", role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def owner(make_user):
    return make_user(name="owner")


@pytest.fixture
def super_admin(make_user):
    return make_user(name="admin", role=UserRole.SUPER_ADMIN.value)


@pytest.fixture
def make_tournament(db, owner):
    def _make(status=TournamentStatus.REGISTRATION_OPEN.value, max_participants=8, owner_user=None, **overrides):
        now = utcnow()
        creator = owner_user or owner
        fields = dict(
            name="Spring Cup",
            game="Rocket League",
            max_participants=max_participants,
            current_participants=0,
            status=status,
            registration_start=now - timedelta(days=1),
            registration_end=now + timedelta(days=1),
            start_date=now + timedelta(days=2),
            end_date=now + timedelta(days=3),
            owner_id=creator.id,
            created_by_id=creator.id,
        )
        fields.update(overrides)
        tournament = Tournament(**fields)
        db.add(tournament)
        db.commit()
        db.refresh(tournament)
        return tournament

    return _make


@pytest.fixture
def register_players(db, make_user):
    """Registers ``count`` fresh players and returns their participant rows in registration order."""
    def _register(tournament, count):
        return [
            participant_service.register_participant(db, tournament.id, make_user())
            for _ in range(count)
        ]

    return _register


@pytest.fixture
def bracket(db, owner, make_tournament, register_players):
    """An in-progress tournament with a generated first round for ``count`` players."""
    def _build(count, max_participants=8):
        tournament = make_tournament(max_participants=max_participants)
        participants = register_players(tournament, count)
        matches = bracket_service.generate_bracket(db, tournament.id, owner)
        db.refresh(tournament)
        return tournament, participants, matches

    return _build


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": str(user.id), "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers
