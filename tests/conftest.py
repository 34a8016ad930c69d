"""
Pytest configuration and fixtures.
"""
import bcrypt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import crm_api.models  # noqa: F401
from crm_api.core.config import settings
from crm_api.core.roles import RoleHierarchy
from crm_api.db.base import Base
from crm_api.db.session import get_db
from crm_api.main import app
from crm_api.models.lead import Lead
from crm_api.services.access_resolver import AccessResolver
from crm_api.services.auth_service import auth_service

DEFAULT_PASSWORD = "s3cret-pass"


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Use the cheapest bcrypt cost in tests."""
    real_gensalt = bcrypt.gensalt
    monkeypatch.setattr(bcrypt, "gensalt", lambda rounds=4, prefix=b"2b": real_gensalt(rounds, prefix))


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables."""
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
def db(engine):
    """Database session shared by the test and the app."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def client(db):
    """API client wired to the test database."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def hierarchy():
    return RoleHierarchy(settings.ROLE_LEVELS)


@pytest.fixture
def resolver(hierarchy):
    return AccessResolver(hierarchy)


@pytest.fixture
def make_user(db):
    """Factory creating users, optionally with module permission rows."""
    counter = {"n": 0}

    def _make_user(role="Staff", branch=None, modules=None, grants=None, email=None,
                   password=DEFAULT_PASSWORD, full_name=None):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        user = auth_service.create_user(
            db, email, password, full_name or f"User {counter['n']}",
            role, branch, modules or [],
        )
        if grants:
            auth_service.set_module_permissions(db, user, grants)
        return user

    return _make_user


@pytest.fixture
def login(client):
    """Log in through the API and return the bearer token."""
    def _login(email, password=DEFAULT_PASSWORD):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()["token"]

    return _login


@pytest.fixture
def auth_headers(login):
    """Authorization headers for a user, logging in through the API."""
    def _headers(user):
        return {"Authorization": f"Bearer {login(user.email)}"}

    return _headers


@pytest.fixture
def leads(db):
    """Two leads in NYC, one in LA."""
    rows = [
        Lead(first_name="Ana", email="ana@example.com", branch="NYC"),
        Lead(first_name="Ben", email="ben@example.com", branch="NYC"),
        Lead(first_name="Cal", email="cal@example.com", branch="LA"),
    ]
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
    return rows
