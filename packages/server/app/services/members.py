"""
Organization membership service: listing, invitations, role changes, removal.

Authorization is decided by the caller (route guard + PermissionEvaluator);
functions here only resolve rows and mutate them.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import Conflict, InvalidOperation, NotFound
from app.models.base import utcnow
from app.models.invitation import Invitation
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.user import User
from app.services.users import get_user_by_email
from issuetrack_shared.schemas.common import MemberRole
from issuetrack_shared.schemas.organizations import (
    InvitationRead,
    MemberInviteRequest,
    MemberResponse,
)
from issuetrack_shared.schemas.users import UserSummary

log = structlog.get_logger()


def to_response(member: OrganizationMember, user: User) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        user_id=member.user_id,
        organization_id=member.organization_id,
        role=MemberRole(member.role),
        joined_at=member.joined_at,
        user=UserSummary.model_validate(user),
    )


async def list_members(session: AsyncSession, org_id: uuid.UUID) -> list[MemberResponse]:
    """Members of an org, admins first, then by join date."""
    admin_first = case((OrganizationMember.role == MemberRole.ADMIN.value, 0), else_=1)
    result = await session.execute(
        select(OrganizationMember, User)
        .join(User, User.id == OrganizationMember.user_id)
        .where(OrganizationMember.organization_id == org_id)
        .order_by(admin_first, OrganizationMember.joined_at)
    )
    return [to_response(member, user) for member, user in result.all()]


async def get_member_in_org(
    session: AsyncSession, org_id: uuid.UUID, member_id: uuid.UUID
) -> OrganizationMember:
    """Resolve a membership row that must belong to ``org_id``."""
    member = await session.get(OrganizationMember, member_id)
    if not member or member.organization_id != org_id:
        raise NotFound("Member not found")
    return member


async def load_member_response(
    session: AsyncSession, member: OrganizationMember
) -> MemberResponse:
    user = await session.get(User, member.user_id)
    return to_response(member, user)


async def invite_member(
    session: AsyncSession,
    org: Organization,
    req: MemberInviteRequest,
    invited_by: uuid.UUID,
) -> tuple[Optional[OrganizationMember], Optional[Invitation]]:
    """Add an existing user directly, or record a pending invitation.

    Returns ``(member, None)`` or ``(None, invitation)``.
    """
    user = await get_user_by_email(session, req.email)
    if user:
        result = await session.execute(
            select(OrganizationMember).where(
                OrganizationMember.organization_id == org.id,
                OrganizationMember.user_id == user.id,
            )
        )
        if result.scalar_one_or_none() or user.id == org.owner_id:
            raise Conflict("User is already a member of this organization")

        member = OrganizationMember(
            user_id=user.id,
            organization_id=org.id,
            role=req.role.value,
        )
        session.add(member)
        await session.flush()
        log.info(
            "member.added",
            org_id=str(org.id),
            user_id=str(user.id),
            role=req.role.value,
            invited_by=str(invited_by),
        )
        return member, None

    now = utcnow()
    result = await session.execute(
        select(Invitation).where(
            Invitation.organization_id == org.id,
            Invitation.email == req.email,
            Invitation.accepted_at.is_(None),
            Invitation.expires_at > now,
        )
    )
    if result.scalars().first():
        raise Conflict("An invitation has already been sent to this email")

    invitation = Invitation(
        email=req.email,
        organization_id=org.id,
        role=req.role.value,
        invited_by=invited_by,
        expires_at=now + timedelta(days=get_settings().invitation_expiry_days),
    )
    session.add(invitation)
    await session.flush()
    log.info("member.invited", org_id=str(org.id), email=req.email, role=req.role.value)
    return None, invitation


def invitation_read(invitation: Invitation) -> InvitationRead:
    return InvitationRead(
        id=invitation.id,
        email=invitation.email,
        role=MemberRole(invitation.role),
        expires_at=invitation.expires_at,
    )


async def update_member_role(
    session: AsyncSession, member: OrganizationMember, role: MemberRole
) -> OrganizationMember:
    previous = member.role
    member.role = role.value
    session.add(member)
    await session.flush()
    log.info(
        "member.role_changed",
        org_id=str(member.organization_id),
        member_id=str(member.id),
        from_role=previous,
        to_role=role.value,
    )
    return member


async def remove_member(session: AsyncSession, member: OrganizationMember) -> None:
    """Delete the membership row and the user's project memberships in that org.

    A user who still leads a project in the organization cannot be removed;
    leadership has to move to someone else first.
    """
    led = await session.execute(
        select(Project).where(
            Project.organization_id == member.organization_id,
            Project.lead_id == member.user_id,
        )
    )
    led_project = led.scalars().first()
    if led_project is not None:
        raise InvalidOperation(
            f"This member is the lead of project {led_project.key}; assign a new lead first"
        )

    project_ids = select(Project.id).where(Project.organization_id == member.organization_id)
    result = await session.execute(
        select(ProjectMember).where(
            ProjectMember.user_id == member.user_id,
            ProjectMember.project_id.in_(project_ids),
        )
    )
    for project_member in result.scalars().all():
        await session.delete(project_member)

    await session.delete(member)
    await session.flush()
    log.info(
        "member.removed",
        org_id=str(member.organization_id),
        member_id=str(member.id),
        user_id=str(member.user_id),
    )
