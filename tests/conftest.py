# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set test environment before importing app
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-32chars!"  # nosec - test-only secret  # noqa: S105
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["SEED_ON_STARTUP"] = "false"

from src.api.deps import get_permission_cache
from src.database import get_db
from src.main import app
from src.models import User
from src.models.base import Base
from src.schemas.rbac import RoleCreateSchema
from src.security import create_access_token
from src.services.permission_cache import PermissionCache
from src.services.rbac_seed_service import seed_rbac_data
from src.services.rbac_service import RoleManagementService

# Test database setup
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> PermissionCache:
    """Permission cache driven by the fake clock."""
    return PermissionCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def service(db_session, cache) -> RoleManagementService:
    return RoleManagementService(db_session, cache)


@pytest.fixture
def seeded(db_session):
    """Seed the core permission catalog and the default roles."""
    seed_rbac_data(db_session)
    return db_session


@pytest.fixture
def make_user(db_session):
    """Factory creating persisted users."""

    def _make_user(username: str = "testuser") -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            full_name=username.title(),
            is_active=True,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_role(service):
    """Factory creating custom roles through the service."""

    def _make_role(name: str, permissions: list[str], level: int | None = None):
        return service.create_role(
            RoleCreateSchema(
                name=name,
                display_name=name.replace("_", " ").title(),
                permissions=permissions,
                level=level,
            )
        )

    return _make_role


@pytest.fixture
def auth_headers():
    """Factory building bearer headers for a user."""

    def _auth_headers(user: User, role: str | None = None) -> dict[str, str]:
        token = create_access_token(user.id, user.username, role=role)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture(scope="function")
def client(db_session, cache):
    """Create a test client with database and cache overrides."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_permission_cache] = lambda: cache
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(seeded, service, make_user) -> User:
    """A user holding the ADMIN system role."""
    user = make_user("admin")
    service.assign_role(user.id, service.get_role_by_name("ADMIN").id)
    return user


@pytest.fixture
def viewer_user(seeded, service, make_user) -> User:
    """A user holding the VIEWER system role."""
    user = make_user("viewer")
    service.assign_role(user.id, service.get_role_by_name("VIEWER").id)
    return user
