import os
import random

# Keep app startup (init_db) off the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from tourney.database import enable_sqlite_foreign_keys, get_session  # noqa: E402
from tourney.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Foreign keys switched on so ON DELETE CASCADE behaves as in production
# 4. Tables created and dropped per test (see session_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(test_engine)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on fresh tables"""
    # Import all models to ensure they're registered BEFORE create_all
    from tourney.models.match import Match  # noqa: F401
    from tourney.models.participant import TournamentParticipant  # noqa: F401
    from tourney.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() so the app never touches its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def rng():
    """Deterministic RNG for seeding"""
    return random.Random(1234)


@pytest.fixture
def make_tournament(session: Session):
    """Factory: registered, seeded (p1 = seed 1 ...) and started tournament. Returns its id."""
    from tourney.services import tournament_service
    from tourney.services.seed_assigner import SEEDING_MANUAL

    def _make(fmt: str = "single_elimination", players: int = 4, win_score: int = 3) -> int:
        tournament = tournament_service.create_tournament(
            session,
            name=f"{fmt} x{players}",
            format=fmt,
            win_score=win_score,
            max_participants=max(players, 2),
        )
        tournament_service.open_registration(session, tournament.id)
        for i in range(1, players + 1):
            tournament_service.register_participant(session, tournament.id, f"p{i}", seed=i)
        tournament_service.close_registration(session, tournament.id)
        tournament_service.start_tournament(session, tournament.id, seeding=SEEDING_MANUAL)
        return tournament.id

    return _make
