"""
Organization service: business logic for org CRUD.
"""

from __future__ import annotations

import re
import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Conflict, NotFound
from app.models.activity import Activity
from app.models.comment import Comment
from app.models.invitation import Invitation
from app.models.label import Label, TicketLabel
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.sprint import Sprint
from app.models.ticket import Ticket
from issuetrack_shared.schemas.common import MemberRole
from issuetrack_shared.schemas.organizations import (
    OrgCreateRequest,
    OrgResponse,
    OrgUpdateRequest,
)

log = structlog.get_logger()

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', trim dashes."""
    return _NON_ALNUM.sub("-", name.lower()).strip("-")


async def get_org_or_404(session: AsyncSession, org_id: uuid.UUID) -> Organization:
    org = await session.get(Organization, org_id)
    if not org:
        raise NotFound("Organization not found")
    return org


async def _slug_taken(
    session: AsyncSession, slug: str, exclude_id: Optional[uuid.UUID] = None
) -> bool:
    stmt = select(Organization.id).where(Organization.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(Organization.id != exclude_id)
    result = await session.execute(stmt)
    return result.first() is not None


async def _count(session: AsyncSession, model, *criteria) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


async def to_response(
    session: AsyncSession, org: Organization, user_id: uuid.UUID
) -> OrgResponse:
    """Build the API payload, including the caller's effective role."""
    if org.owner_id == user_id:
        role: Optional[MemberRole] = MemberRole.ADMIN
    else:
        result = await session.execute(
            select(OrganizationMember.role).where(
                OrganizationMember.organization_id == org.id,
                OrganizationMember.user_id == user_id,
            )
        )
        stored = result.scalar_one_or_none()
        role = MemberRole(stored) if stored else None

    return OrgResponse(
        id=org.id,
        name=org.name,
        slug=org.slug,
        ticket_prefix=org.ticket_prefix,
        description=org.description,
        logo_url=org.logo_url,
        owner_id=org.owner_id,
        is_active=org.is_active,
        user_role=role,
        member_count=await _count(
            session, OrganizationMember, OrganizationMember.organization_id == org.id
        ),
        project_count=await _count(session, Project, Project.organization_id == org.id),
        ticket_count=await _count(session, Ticket, Ticket.organization_id == org.id),
        created_at=org.created_at,
        updated_at=org.updated_at,
    )


async def list_user_orgs(session: AsyncSession, user_id: uuid.UUID) -> list[Organization]:
    """Organizations where the user has a membership row or is the owner, newest first."""
    member_org_ids = select(OrganizationMember.organization_id).where(
        OrganizationMember.user_id == user_id
    )
    result = await session.execute(
        select(Organization)
        .where(or_(Organization.owner_id == user_id, Organization.id.in_(member_org_ids)))
        .order_by(Organization.created_at.desc())
    )
    return list(result.scalars().all())


async def create_org(
    session: AsyncSession, req: OrgCreateRequest, owner_id: uuid.UUID
) -> Organization:
    """Create an org owned by ``owner_id`` plus the owner's ADMIN membership row."""
    slug = slugify(req.name)
    if not slug:
        slug = req.ticket_prefix.lower()
    if await _slug_taken(session, slug):
        raise Conflict("An organization with this name already exists")

    existing = await session.execute(
        select(Organization.id).where(Organization.ticket_prefix == req.ticket_prefix)
    )
    if existing.first() is not None:
        raise Conflict("This ticket prefix is already in use")

    org = Organization(
        name=req.name,
        slug=slug,
        ticket_prefix=req.ticket_prefix,
        description=req.description,
        owner_id=owner_id,
    )
    session.add(org)
    await session.flush()

    session.add(
        OrganizationMember(
            user_id=owner_id,
            organization_id=org.id,
            role=MemberRole.ADMIN.value,
        )
    )
    await session.flush()

    log.info("org.created", org_id=str(org.id), slug=slug, owner=str(owner_id))
    return org


async def update_org(
    session: AsyncSession, org: Organization, req: OrgUpdateRequest
) -> Organization:
    if req.name is not None and req.name != org.name:
        slug = slugify(req.name) or org.slug
        if await _slug_taken(session, slug, exclude_id=org.id):
            raise Conflict("An organization with this name already exists")
        org.name = req.name
        org.slug = slug

    if req.description is not None:
        org.description = req.description
    if req.logo_url is not None:
        org.logo_url = req.logo_url

    session.add(org)
    await session.flush()
    await session.refresh(org)

    log.info("org.updated", org_id=str(org.id), slug=org.slug)
    return org


async def delete_org(session: AsyncSession, org: Organization) -> None:
    """Delete an org and everything it owns, children first."""
    ticket_ids = select(Ticket.id).where(Ticket.organization_id == org.id)
    project_ids = select(Project.id).where(Project.organization_id == org.id)

    await session.execute(delete(Comment).where(Comment.ticket_id.in_(ticket_ids)))
    await session.execute(delete(TicketLabel).where(TicketLabel.ticket_id.in_(ticket_ids)))
    await session.execute(delete(Activity).where(Activity.organization_id == org.id))
    # Detach sub-tickets before removing their parents
    await session.execute(
        update(Ticket)
        .where(Ticket.organization_id == org.id)
        .values(parent_id=None, sprint_id=None)
    )
    await session.execute(delete(Ticket).where(Ticket.organization_id == org.id))
    await session.execute(delete(Sprint).where(Sprint.organization_id == org.id))
    await session.execute(delete(ProjectMember).where(ProjectMember.project_id.in_(project_ids)))
    await session.execute(delete(Project).where(Project.organization_id == org.id))
    await session.execute(delete(Label).where(Label.organization_id == org.id))
    await session.execute(delete(Invitation).where(Invitation.organization_id == org.id))
    await session.execute(
        delete(OrganizationMember).where(OrganizationMember.organization_id == org.id)
    )
    await session.delete(org)
    await session.flush()

    log.info("org.deleted", org_id=str(org.id), slug=org.slug)
