"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema rebuilt for every test
- Engine config and caller helpers
- Profile/org factories
- HTTPX AsyncClient with the CSRF header
"""
import os
import uuid
from typing import AsyncGenerator, Generator

# Configure before the app imports settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["SENTRY_DSN"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import AccessConfig, build_access_config, settings
from app.core.deps import get_db
from app.db.base import Base
from app.db.models import Organization, UserProfile
from app.main import app
from app.schemas.auth import CallerContext


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory database per test, shared across threads."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """
    Session bound to the per-test database.

    App code may commit freely; isolation comes from the fresh schema.
    """
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture(scope="function")
def config() -> AccessConfig:
    return build_access_config(settings)


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_profile(db: Session):
    """Create a live profile; returns the UserProfile."""

    def _make(
        user_id: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        is_admin: bool = False,
    ) -> UserProfile:
        user_id = user_id or f"user_{uuid.uuid4().hex[:10]}"
        profile = UserProfile(
            user_id=user_id,
            email=email if email is not None else f"{user_id}@example.com",
            phone=phone,
            display_name=user_id,
            is_admin=is_admin,
        )
        db.add(profile)
        db.flush()
        return profile

    return _make


@pytest.fixture
def make_org(db: Session, config: AccessConfig):
    """Create an org owned by owner_id through the service (roles seeded)."""
    from app.services import org_service

    def _make(owner_id: str, slug: str | None = None, name: str = "Test Organization") -> Organization:
        org = org_service.create_org(
            db,
            CallerContext.for_user(owner_id),
            config,
            name=name,
            slug=slug or f"org-{uuid.uuid4().hex[:8]}",
        )
        db.flush()
        return org

    return _make


@pytest.fixture
def add_member(db: Session, config: AccessConfig):
    """Add user_id to org with the named role, bypassing invitations."""
    from app.services import membership_service, role_service

    def _add(org: Organization, user_id: str, role_name: str | None = None):
        role = role_service.get_role_by_name(db, org.id, role_name or "member")
        return membership_service.add_member(db, org_id=org.id, user_id=user_id, role=role)

    return _add


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient with the CSRF header. Pass X-User-Id per request.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Requested-With": "XMLHttpRequest"},
    ) as c:
        yield c

    app.dependency_overrides.clear()
