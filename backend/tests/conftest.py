import os

# Settings are read at import time, so the test environment must be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("BOOTSTRAP_ADMIN_USERNAME", None)
os.environ.pop("BOOTSTRAP_ADMIN_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient
from users_service.core.database import Base, SessionLocal, engine, get_db
from users_service.core.security import create_access_token
from users_service.main import app
from users_service.models.user import Role
from users_service.schemas.user import CreateUserRequest
from users_service.services.user_service import user_service


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Create a stored user through the service and return its projection"""
    def _make_user(username, role=Role.ADHERANT, password="secret1", **fields):
        request = CreateUserRequest(username=username, password=password, role=role, **fields)
        return user_service.create_user(request, db)
    return _make_user


def auth_headers(username, role="Adherant"):
    return {"Authorization": f"Bearer {create_access_token(username, role)}"}


@pytest.fixture
def admin(make_user):
    return make_user("admin", role=Role.ADMIN, email="admin@example.com")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin.username, "Admin")
