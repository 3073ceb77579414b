"""
Organization member endpoints.

Mutating routes follow one order: authenticate, resolve the organization and
the member row (which must belong to it), check the caller's permission, apply
the owner rule, then mutate.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, get_evaluator
from app.core.cache import ProjectMetadataCache, get_project_cache
from app.core.database import get_session
from app.core.permissions import PermissionEvaluator
from app.models.user import User
from app.services import members as member_service
from app.services import organizations as org_service
from issuetrack_shared.schemas.common import Capability, MessageResponse
from issuetrack_shared.schemas.organizations import (
    InvitationCreatedResponse,
    MemberInviteRequest,
    MemberResponse,
    MemberRoleUpdate,
)

log = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=list[MemberResponse])
async def list_members(
    org_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    """Members ordered admins first, then by join date."""
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_membership(user.id, org.id)
    return await member_service.list_members(session, org.id)


@router.post(
    "",
    status_code=201,
    response_model=MemberResponse | InvitationCreatedResponse,
)
async def invite_member(
    org_id: uuid.UUID,
    body: MemberInviteRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    """Add an existing user, or create a pending invitation for an unknown email."""
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_permission(user.id, org.id, Capability.INVITE_MEMBERS)

    member, invitation = await member_service.invite_member(session, org, body, user.id)
    if member is not None:
        return await member_service.load_member_response(session, member)
    return InvitationCreatedResponse(
        message="Invitation sent successfully",
        invitation=member_service.invitation_read(invitation),
    )


@router.put("/{member_id}", response_model=MemberResponse)
async def update_member_role(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    body: MemberRoleUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    member = await member_service.get_member_in_org(session, org.id, member_id)
    decision = await evaluator.check_role_change(user.id, org.id, member)
    decision.raise_for_denial()

    member = await member_service.update_member_role(session, member, body.role)
    return await member_service.load_member_response(session, member)


@router.delete("/{member_id}", response_model=MessageResponse)
async def remove_member(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    cache: ProjectMetadataCache = Depends(get_project_cache),
):
    """Remove a member. Members may always remove themselves, except the owner."""
    org = await org_service.get_org_or_404(session, org_id)
    member = await member_service.get_member_in_org(session, org.id, member_id)
    decision = await evaluator.check_member_removal(user.id, org.id, member)
    decision.raise_for_denial()

    await member_service.remove_member(session, member)
    # project member counts in cached metadata may have changed
    cache.invalidate_organization(org.id)
    return MessageResponse(message="Member removed successfully")
