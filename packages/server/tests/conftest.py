"""
Shared fixtures: in-memory SQLite (aiosqlite), mocked Redis, an ASGI client,
and small factories for users, organizations and projects.
"""

from __future__ import annotations

import os

# Settings are read at import time; point them at test values first.
os.environ.setdefault("IT_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("IT_SECRET_KEY", "test-secret-key-with-at-least-32-bytes!")
os.environ.setdefault("IT_DEBUG", "true")

import uuid
from typing import Optional
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  (populate metadata)
from app.core.auth import create_jwt, hash_password
from app.core.database import get_session
from app.main import create_app
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.user import User


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """Session for arranging test data; factories commit through it."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Redis (revocation list)
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def redis_mock():
    """Replace Redis with an in-memory stand-in for revoked JTIs."""
    revoked: set[str] = set()

    async def setex(key, ttl, value):
        revoked.add(key)

    async def exists(key):
        return 1 if key in revoked else 0

    client = AsyncMock()
    client.setex = AsyncMock(side_effect=setex)
    client.exists = AsyncMock(side_effect=exists)
    client.ping = AsyncMock(return_value=True)

    with patch("app.core.auth.get_redis", AsyncMock(return_value=client)), patch(
        "app.core.redis.get_redis", AsyncMock(return_value=client)
    ):
        yield client


# ---------------------------------------------------------------------------
# App / client
# ---------------------------------------------------------------------------

@pytest.fixture
def test_app(session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    return app


@pytest.fixture
async def client(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_jwt(user.id)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

async def make_user(
    db: AsyncSession,
    name: str = "User",
    *,
    email: Optional[str] = None,
    password: Optional[str] = None,
    is_active: bool = True,
) -> User:
    user = User(
        email=email or f"{name.lower()}-{uuid.uuid4().hex[:8]}@example.com",
        name=name,
        password_hash=hash_password(password) if password else None,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    return user


async def make_org(
    db: AsyncSession,
    owner: User,
    *,
    prefix: str = "ACME",
    name: Optional[str] = None,
    owner_row: bool = True,
) -> Organization:
    """Create an org; ``owner_row=False`` leaves the owner without a membership row."""
    org = Organization(
        name=name or f"Org {prefix}",
        slug=(name or f"org-{prefix}").lower().replace(" ", "-"),
        ticket_prefix=prefix,
        owner_id=owner.id,
    )
    db.add(org)
    await db.flush()
    if owner_row:
        db.add(OrganizationMember(user_id=owner.id, organization_id=org.id, role="ADMIN"))
    await db.commit()
    return org


async def add_member(
    db: AsyncSession, org: Organization, user: User, role: str = "MEMBER"
) -> OrganizationMember:
    member = OrganizationMember(user_id=user.id, organization_id=org.id, role=role)
    db.add(member)
    await db.commit()
    return member


async def make_project(
    db: AsyncSession,
    org: Organization,
    lead: Optional[User],
    *,
    key: str = "WEB",
    name: str = "Website",
) -> Project:
    project = Project(
        organization_id=org.id,
        name=name,
        key=key,
        lead_id=lead.id if lead else None,
    )
    db.add(project)
    await db.flush()
    if lead:
        db.add(ProjectMember(project_id=project.id, user_id=lead.id, role="LEAD"))
    await db.commit()
    return project


async def add_project_member(
    db: AsyncSession, project: Project, user: User, role: str = "MEMBER"
) -> ProjectMember:
    member = ProjectMember(project_id=project.id, user_id=user.id, role=role)
    db.add(member)
    await db.commit()
    return member
