"""
Organization and organization-membership schemas.

Covers: org CRUD request/response, member invite / role update, invitations.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .common import MemberRole
from .users import UserSummary


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    description: Optional[str] = None
    ticket_prefix: str = Field(
        ...,
        min_length=2,
        max_length=5,
        pattern=r"^[A-Z]+$",
        description="Uppercase prefix for ticket keys, e.g. ACME-42",
    )


class OrgUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    logo_url: Optional[str] = None


class MemberInviteRequest(BaseModel):
    email: EmailStr
    role: MemberRole = MemberRole.MEMBER


class MemberRoleUpdate(BaseModel):
    """Body for PUT /organizations/{orgId}/members/{memberId}."""
    model_config = {"extra": "forbid"}

    role: MemberRole


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    ticket_prefix: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    owner_id: uuid.UUID
    is_active: bool = True
    user_role: Optional[MemberRole] = None  # the requesting user's effective role
    member_count: int = 0
    project_count: int = 0
    ticket_count: int = 0
    created_at: datetime
    updated_at: datetime


class MemberResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    organization_id: uuid.UUID
    role: MemberRole
    joined_at: datetime
    user: UserSummary


class InvitationRead(BaseModel):
    id: uuid.UUID
    email: str
    role: MemberRole
    expires_at: datetime


class InvitationCreatedResponse(BaseModel):
    message: str
    invitation: InvitationRead
