"""
Pytest configuration and fixtures for backend tests.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from factory_api.main import create_app
from factory_api.models import (
    Base,
    Factory,
    FactoryManager,
    Group,
    Line,
    LineManager,
    Team,
    User,
    utcnow,
)
from factory_shared.config.constants import Roles
from factory_shared.infrastructure.db import get_db
from factory_shared.infrastructure.events import EventBus
from factory_shared.security.auth import Requester, sign_jwt


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def event_bus():
    """Local-only bus; tests subscribe to it to observe published events."""
    bus = EventBus(None)
    yield bus
    bus.close()


@pytest.fixture(scope="function")
def app(event_bus):
    return create_app(engine=engine, event_bus=event_bus)


@pytest.fixture(scope="function")
def client(app, db_session):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Users
# =============================================================================


def _user(db_session, user_id: str, role_code: str) -> User:
    user = User(id=user_id, username=user_id, full_name=user_id.replace("-", " ").title(), role_code=role_code)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def seed_admin(db_session):
    return _user(db_session, "admin-1", Roles.ADMIN)


@pytest.fixture
def seed_managers(db_session):
    """Three line managers without any assignment yet."""
    return [_user(db_session, f"manager-{n}", Roles.LINE_MANAGER) for n in (1, 2, 3)]


@pytest.fixture
def seed_worker(db_session):
    return _user(db_session, "worker-1", Roles.WORKER)


def requester_for(user: User) -> Requester:
    return Requester(subject_id=user.id, role_code=user.role_code)


def headers_for(user: User) -> dict[str, str]:
    token = sign_jwt({"sub": user.id, "role": user.role_code})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(seed_admin):
    return headers_for(seed_admin)


@pytest.fixture
def worker_headers(seed_worker):
    return headers_for(seed_worker)


# =============================================================================
# Hierarchy
# =============================================================================


@pytest.fixture
def seed_hierarchy(db_session):
    """
    Two factories:

        F1 -> L1 -> T1 -> G1
              L2 -> T2
        F2
    """
    f1 = Factory(code="F1", name="North Plant", address="1 Mill Road")
    f2 = Factory(code="F2", name="South Plant")
    db_session.add_all([f1, f2])
    db_session.flush()

    l1 = Line(code="L1", name="Assembly", capacity=40, factory_id=f1.id)
    l2 = Line(code="L2", name="Packaging", capacity=20, factory_id=f1.id)
    db_session.add_all([l1, l2])
    db_session.flush()

    t1 = Team(code="T1", name="Morning Crew", line_id=l1.id)
    t2 = Team(code="T2", name="Night Crew", line_id=l2.id)
    db_session.add_all([t1, t2])
    db_session.flush()

    g1 = Group(code="G1", name="Welders", team_id=t1.id)
    db_session.add(g1)
    db_session.commit()

    return {"F1": f1, "F2": f2, "L1": l1, "L2": l2, "T1": t1, "T2": t2, "G1": g1}


def assign(db_session, model, scope_id: str, user_id: str, is_primary: bool = False, end_date=None):
    """Insert an assignment row directly, bypassing the facets."""
    row = model(
        scope_id=scope_id,
        user_id=user_id,
        is_primary=is_primary,
        start_date=utcnow(),
        end_date=end_date,
    )
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def line_manager(db_session, seed_hierarchy, seed_managers):
    """manager-1 is the primary manager of L1."""
    manager = seed_managers[0]
    assign(db_session, LineManager, seed_hierarchy["L1"].id, manager.id, is_primary=True)
    return manager


@pytest.fixture
def factory_manager(db_session, seed_hierarchy, seed_managers):
    """manager-3 manages F1."""
    manager = seed_managers[2]
    assign(db_session, FactoryManager, seed_hierarchy["F1"].id, manager.id, is_primary=True)
    return manager
