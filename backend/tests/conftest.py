"""
Pytest configuration and fixtures for CloudGuard backend tests.

Tests run against an in-memory SQLite database. The engine uses a single
shared connection, so sessions opened by the routes, Celery tasks and
fixtures all see the same data.
"""

import os

# Must be set before cloudguard is imported: settings and engine are module level
os.environ["CLOUDGUARD_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("CLOUDGUARD_SECRET_KEY", "test-secret-key-for-cloudguard-unit-tests")  # pragma: allowlist secret
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("CLOUDGUARD_OPENAI_API_KEY", None)

from typing import Any, Dict, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from cloudguard.auth import get_current_user  # noqa: E402
from cloudguard.database import Base, SessionLocal, User, engine, get_db  # noqa: E402

TEST_USER = {"sub": "tester", "id": 1, "role": "admin"}


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Provide a database session on freshly created tables"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_user(db_session: Session) -> User:
    """User row matching the claims of the authenticated test client"""
    user = User(
        id=TEST_USER["id"],
        username=TEST_USER["sub"],
        email="tester@example.com",
        password="not-a-real-hash",  # pragma: allowlist secret
        role=TEST_USER["role"],
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def app_client(db_session: Session) -> Generator[TestClient, None, None]:
    """FastAPI test client using the test session, without authentication overrides"""
    from cloudguard.main import app

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager: the lifespan would seed frameworks on its own
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_client: TestClient) -> TestClient:
    """Test client authenticated as TEST_USER"""
    from cloudguard.main import app

    def override_current_user() -> Dict[str, Any]:
        return dict(TEST_USER)

    app.dependency_overrides[get_current_user] = override_current_user
    return app_client
