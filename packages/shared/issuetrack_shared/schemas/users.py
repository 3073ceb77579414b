"""User and authentication schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class OAuthProvider(str, Enum):
    GITHUB = "github"
    GOOGLE = "google"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: str = Field(min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserSummary(BaseModel):
    """Public projection of a user embedded in member/ticket payloads."""
    id: uuid.UUID
    name: str
    email: str
    avatar_url: Optional[str] = None
    is_active: bool = True

    model_config = {"from_attributes": True}


class UserResponse(UserSummary):
    created_at: datetime


class AuthResponse(BaseModel):
    user_id: uuid.UUID
    email: str
    message: str


class ProviderListResponse(BaseModel):
    providers: List[OAuthProvider]
