"""
Authentication for the issue tracker.

Supports:
- Email/password credentials (bcrypt, cost 12)
- OAuth-provisioned accounts without a password (GitHub/Google)
- JWT sessions carried in the ``it_session`` cookie or a Bearer header
- Redis-backed JWT revocation list
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import Unauthenticated
from app.core.permissions import PermissionEvaluator, SqlMembershipStore
from app.core.redis import get_redis
from app.models.user import User

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "it_session"
CSRF_COOKIE = "it_csrf"

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def remaining_lifetime(payload: dict) -> int:
    """Seconds until the token in ``payload`` expires (at least 1)."""
    exp = payload.get("exp")
    if not exp:
        return 1
    return max(int(exp - datetime.now(timezone.utc).timestamp()), 1)


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int = 3600) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    await redis.setex(f"jwt:revoked:{jti}", ttl_seconds, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# OAuth account provisioning
# ---------------------------------------------------------------------------

async def provision_oauth_user(
    session: AsyncSession,
    email: str,
    name: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> User:
    """Return the user for ``email``, creating a password-less account on first login."""
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        if avatar_url and not user.avatar_url:
            user.avatar_url = avatar_url
            session.add(user)
            await session.flush()
        return user

    user = User(
        email=email,
        name=name or email.split("@")[0],
        avatar_url=avatar_url,
        password_hash=None,
    )
    session.add(user)
    await session.flush()
    log.info("user.provisioned_oauth", user_id=str(user.id), email=email)
    return user


# ---------------------------------------------------------------------------
# Principal resolution
# ---------------------------------------------------------------------------

def extract_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    """Bearer header wins over the session cookie."""
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials.strip()
    return request.cookies.get(SESSION_COOKIE)


async def _payload_for(token: str) -> dict:
    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise Unauthenticated("Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise Unauthenticated("Session has been revoked")
    return payload


async def get_session_payload(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """Validated JWT claims for the current request."""
    token = extract_token(request, credentials)
    if not token:
        raise Unauthenticated()
    return await _payload_for(token)


async def get_current_user(
    payload: dict = Depends(get_session_payload),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the authenticated, active user or fail with 401."""
    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise Unauthenticated("Invalid or expired session")

    user = await session.get(User, user_id)
    if not user:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Unauthenticated("Account is deactivated")

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


def get_evaluator(session: AsyncSession = Depends(get_session)) -> PermissionEvaluator:
    """Permission evaluator bound to the request's session."""
    return PermissionEvaluator(SqlMembershipStore(session), settings)
