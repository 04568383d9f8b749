import pytest
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from app.database import Base, get_db, get_session_factory, enable_sqlite_foreign_keys
from app.main import app
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """
    A session per test. Services commit and roll back for real, so the
    tables are emptied afterwards instead of wrapping the test in a transaction.
    """
    session = TestingSessionLocal()

    yield session

    session.rollback()
    session.close()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())

@pytest.fixture(scope="function")
def make_profile(db_session):
    """Factory for profiles; the identity subsystem owns these in production."""
    from app.models.profile import Profile

    def _make_profile(full_name="Test User"):
        profile = Profile(full_name=full_name)
        db_session.add(profile)
        db_session.commit()
        db_session.refresh(profile)
        return profile
    return _make_profile

@pytest.fixture(scope="function")
def alice(make_profile):
    return make_profile("Alice")

@pytest.fixture(scope="function")
def bob(make_profile):
    return make_profile("Bob")

@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens for a profile."""
    from app.core.security import create_access_token

    def _get_token(profile):
        return create_access_token(data={"sub": profile.id, "type": "access"})
    return _get_token

@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(profile):
        return {"Authorization": f"Bearer {get_token(profile)}"}
    return _auth_headers

@pytest.fixture(scope="function")
def change_events():
    """Collects every change event published while the test runs."""
    from app.services.realtime import change_feed

    events = []
    token = change_feed.subscribe(events.append)
    yield events
    change_feed.unsubscribe(token)

@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
