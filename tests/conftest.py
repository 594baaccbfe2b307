import random

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from leaguenight.database import get_session, init_db
from leaguenight.main import app, sms_notifier
from leaguenight.services.engine import LeagueNightEngine
from leaguenight.services.events import EventBus
from leaguenight.services.locks import InstanceLockRegistry
from leaguenight.services.tiebreak import RandomTiebreak

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# CRITICAL: Test Database Setup with StaticPool
# ============================================================================
# 1. Use sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables created explicitly through init_db(test_engine), dropped after
#    each test so ids and rows never leak between tests
# 4. App dependency overridden to use test_engine (see client_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a freshly created schema."""
    init_db(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="engine")
def engine_fixture(session: Session) -> LeagueNightEngine:
    """Engine with its own bus and locks and a seeded tiebreak."""
    return LeagueNightEngine(
        session,
        bus=EventBus(),
        locks=InstanceLockRegistry(),
        tiebreak=RandomTiebreak(random.Random(7)),
    )


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    CRITICAL: Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration. This ensures the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session
    original_factory = sms_notifier.session_factory
    sms_notifier.session_factory = lambda: Session(test_engine)

    with TestClient(app) as client:
        yield client

    sms_notifier.session_factory = original_factory
    app.dependency_overrides.clear()
