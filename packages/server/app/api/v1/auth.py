"""
Authentication endpoints.

- Email/Password registration & login
- OAuth provider discovery and authorization URLs (GitHub/Google)
- JWT session management (refresh, logout, me)
"""

from __future__ import annotations

from urllib.parse import urlencode

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    bearer_scheme,
    create_jwt,
    decode_jwt,
    extract_token,
    generate_csrf_token,
    get_current_user,
    get_session_payload,
    remaining_lifetime,
    revoke_jwt,
    verify_password,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AccessDenied, Unauthenticated, ValidationFailed
from app.models.user import User
from app.services import users as user_service
from issuetrack_shared.schemas.common import MessageResponse
from issuetrack_shared.schemas.users import (
    AuthResponse,
    LoginRequest,
    OAuthProvider,
    ProviderListResponse,
    RegisterRequest,
    UserResponse,
)

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(key=CSRF_COOKIE, value=csrf, **{**COOKIE_KWARGS, "httponly": False})


def _start_session(response: Response, user: User) -> None:
    token, _jti = create_jwt(user.id)
    _set_session_cookies(response, token, generate_csrf_token())


def enabled_providers() -> list[OAuthProvider]:
    providers = []
    if settings.github_client_id and settings.github_client_secret:
        providers.append(OAuthProvider.GITHUB)
    if settings.google_client_id and settings.google_client_secret:
        providers.append(OAuthProvider.GOOGLE)
    return providers


# ---------------------------------------------------------------------------
# Email/Password
# ---------------------------------------------------------------------------

@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password and start a session."""
    user = await user_service.register_user(session, body)
    _start_session(response, user)
    return AuthResponse(user_id=user.id, email=user.email, message="Registration successful")


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    user = await user_service.get_user_by_email(session, body.email)

    if not user or not user.password_hash:
        raise Unauthenticated("Invalid email or password")

    if not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=body.email, reason="bad_password")
        raise Unauthenticated("Invalid email or password")

    if not user.is_active:
        log.warning("auth.login_failure", email=body.email, reason="inactive")
        raise AccessDenied("Account is deactivated")

    _start_session(response, user)
    log.info("auth.login_success", user_id=str(user.id))
    return AuthResponse(user_id=user.id, email=user.email, message="Login successful")


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------

@router.get("/providers", response_model=ProviderListResponse)
async def list_providers():
    """OAuth providers with configured credentials."""
    return ProviderListResponse(providers=enabled_providers())


@router.get("/login/oidc")
async def oidc_login(provider: str):
    """Return the provider's authorization URL. The code exchange happens elsewhere."""
    if provider not in {p.value for p in enabled_providers()}:
        raise ValidationFailed("Unsupported or unconfigured OAuth provider")

    if provider == OAuthProvider.GITHUB.value:
        query = urlencode({"client_id": settings.github_client_id, "scope": "read:user user:email"})
        auth_url = f"https://github.com/login/oauth/authorize?{query}"
    else:
        query = urlencode(
            {
                "client_id": settings.google_client_id,
                "response_type": "code",
                "scope": "openid email profile",
            }
        )
        auth_url = f"https://accounts.google.com/o/oauth2/v2/auth?{query}"

    return {"provider": provider, "authorization_url": auth_url}


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    """Fresh user data for the session holder."""
    return UserResponse.model_validate(user, from_attributes=True)


@router.post("/refresh", response_model=MessageResponse)
async def refresh_session(
    response: Response,
    payload: dict = Depends(get_session_payload),
    user: User = Depends(get_current_user),
):
    """Issue a new JWT and revoke the old one."""
    jti = payload.get("jti")
    if jti:
        await revoke_jwt(jti, remaining_lifetime(payload))
    _start_session(response, user)
    return MessageResponse(message="Session refreshed")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
):
    """Invalidate the current session. Succeeds even without one."""
    token = extract_token(request, credentials)
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = None  # already invalid; just clear cookies
        if payload and payload.get("jti"):
            await revoke_jwt(payload["jti"], remaining_lifetime(payload))
            log.info("auth.logout", user_id=payload.get("sub"))

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return MessageResponse(message="Logged out")
