"""
Pytest configuration and fixtures for Newsdesk API tests.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from newsdesk.database import Base, get_db
from newsdesk.limiter import limiter
from newsdesk.main import app
from newsdesk.models.category import Category
from newsdesk.models.user import User, Role
from newsdesk.auth import get_password_hash, create_access_token

# Disable rate limiting for tests
limiter.enabled = False

# Use in-memory SQLite for tests with shared connection
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Global session for sharing across requests
_test_session = None

PASSWORD = "testpassword123"


def get_test_db():
    """Get the shared test database session."""
    yield _test_session


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    global _test_session

    Base.metadata.create_all(bind=engine)
    _test_session = TestingSessionLocal()
    app.dependency_overrides[get_db] = get_test_db

    yield _test_session

    app.dependency_overrides.clear()
    _test_session.close()
    _test_session = None
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Create a test client."""
    with TestClient(app) as c:
        yield c


def make_user(db, email, role=Role.USER, crud_access=False, name=None):
    user = User(
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        name=name or email.split("@")[0],
        role=role,
        crud_access=crud_access,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def headers_for(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def reader(db):
    return make_user(db, "reader@example.com")


@pytest.fixture(scope="function")
def admin(db):
    """Admin without CRUD access: everything goes through approval."""
    return make_user(db, "admin@example.com", role=Role.ADMIN, name="Asha Admin")


@pytest.fixture(scope="function")
def crud_admin(db):
    return make_user(db, "editor@example.com", role=Role.ADMIN, crud_access=True, name="Eli Editor")


@pytest.fixture(scope="function")
def superadmin(db):
    return make_user(db, "chief@example.com", role=Role.SUPERADMIN, name="Sam Chief")


@pytest.fixture(scope="function")
def reader_headers(reader):
    return headers_for(reader)


@pytest.fixture(scope="function")
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture(scope="function")
def crud_headers(crud_admin):
    return headers_for(crud_admin)


@pytest.fixture(scope="function")
def super_headers(superadmin):
    return headers_for(superadmin)


@pytest.fixture(scope="function")
def category(db):
    category = Category(name="Markets", description="Equities and indices")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture
def post_payload(category):
    return {
        "title": "Sensex closes at record high",
        "short_title": "Sensex record",
        "body": "Benchmark indices rallied for a fifth straight session on strong foreign inflows.",
        "category": category.id,
        "tags": ["markets", "sensex"],
    }
