# tests/conftest.py
import os

# Configure before the app reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("PIN_STORE_BACKEND", "database")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base, get_db
from app.main import app
from app.core.security import create_access_token, get_password_hash
from app.models.user import User

TEST_PASSWORD = "Password123"

SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def other_session(db_session):
    """A second session on the same database, standing in for a concurrent request."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client that uses the test session."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def test_user(db_session):
    """An active, already verified user."""
    user = User(
        email="test@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        username="test",
        display_name="test",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user):
    """Generate authentication headers for tests."""
    token = create_access_token({"sub": test_user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def registered_user(client, db_session):
    """Register through the API and return the stored user."""
    response = client.post("/api/v1/users/register", json={
        "email": "newuser@example.com",
        "password": "SecurePassword123",
    })
    assert response.status_code == 201
    db_session.expire_all()
    return db_session.query(User).filter(User.email == "newuser@example.com").first()
