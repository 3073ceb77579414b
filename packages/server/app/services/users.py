"""
User service: registration and lookups.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password
from app.core.errors import Conflict, ValidationFailed
from app.models.user import User
from issuetrack_shared.schemas.users import RegisterRequest, UserSummary

log = structlog.get_logger()

MIN_PASSWORD_LENGTH = 8


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def register_user(session: AsyncSession, req: RegisterRequest) -> User:
    if len(req.password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details=[{"field": "password", "message": "Too short", "type": "too_short"}],
        )
    if await get_user_by_email(session, req.email):
        raise Conflict("Email already registered")

    user = User(
        email=req.email,
        name=req.name,
        password_hash=hash_password(req.password),
    )
    session.add(user)
    await session.flush()

    log.info("user.registered", user_id=str(user.id), email=req.email)
    return user


async def get_user_summaries(
    session: AsyncSession, user_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, UserSummary]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {u.id: UserSummary.model_validate(u) for u in result.scalars().all()}
