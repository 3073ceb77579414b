"""
Project service layer.

Handles:
- Project CRUD scoped to an organization
- Key derivation and per-org key uniqueness
- Lead validation (the lead must belong to the organization)
- Read models for list/detail responses
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Conflict, InvalidOperation, NotFound, ValidationFailed
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.sprint import Sprint
from app.models.ticket import Ticket
from issuetrack_shared.schemas.common import ProjectRole
from issuetrack_shared.schemas.projects import (
    ProjectCreate,
    ProjectDetail,
    ProjectRead,
    ProjectUpdate,
    derive_project_key,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_project_or_404(
    session: AsyncSession, project_id: uuid.UUID, org_id: uuid.UUID
) -> Project:
    project = await session.get(Project, project_id)
    if not project or project.organization_id != org_id:
        raise NotFound("Project not found")
    return project


async def is_org_member(session: AsyncSession, org: Organization, user_id: uuid.UUID) -> bool:
    """Membership row or ownership; the owner always counts."""
    if org.owner_id == user_id:
        return True
    result = await session.execute(
        select(OrganizationMember.id).where(
            OrganizationMember.organization_id == org.id,
            OrganizationMember.user_id == user_id,
        )
    )
    return result.first() is not None


async def _count(session: AsyncSession, model, *criteria) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


async def to_read(session: AsyncSession, project: Project) -> ProjectRead:
    return ProjectRead(
        id=project.id,
        organization_id=project.organization_id,
        name=project.name,
        key=project.key,
        description=project.description,
        lead_id=project.lead_id,
        is_active=project.is_active,
        ticket_count=await _count(session, Ticket, Ticket.project_id == project.id),
        sprint_count=await _count(session, Sprint, Sprint.project_id == project.id),
        member_count=await _count(session, ProjectMember, ProjectMember.project_id == project.id),
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


async def to_detail(
    session: AsyncSession, metadata: ProjectRead, user_id: uuid.UUID
) -> ProjectDetail:
    """Attach the caller's project role to (possibly cached) metadata."""
    result = await session.execute(
        select(ProjectMember.role).where(
            ProjectMember.project_id == metadata.id,
            ProjectMember.user_id == user_id,
        )
    )
    role = result.scalar_one_or_none()
    if role is None and metadata.lead_id == user_id:
        role = ProjectRole.LEAD.value
    return ProjectDetail(
        **metadata.model_dump(),
        user_role=ProjectRole(role) if role else None,
        is_user_member=role is not None,
    )


async def _key_taken(session: AsyncSession, org_id: uuid.UUID, key: str) -> bool:
    result = await session.execute(
        select(Project.id).where(Project.organization_id == org_id, Project.key == key)
    )
    return result.first() is not None


async def generate_key(session: AsyncSession, org: Organization, name: str) -> str:
    key = derive_project_key(name)
    if len(key) >= 2:
        return key
    count = await _count(session, Project, Project.organization_id == org.id)
    return f"{org.ticket_prefix}P{count + 1}"


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def list_projects(
    session: AsyncSession, org_id: uuid.UUID, include_inactive: bool = False
) -> list[Project]:
    stmt = select(Project).where(Project.organization_id == org_id)
    if not include_inactive:
        stmt = stmt.where(Project.is_active == True)  # noqa: E712
    stmt = stmt.order_by(Project.is_active.desc(), Project.updated_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_project(
    session: AsyncSession,
    org: Organization,
    project_in: ProjectCreate,
    creator_id: uuid.UUID,
) -> Project:
    key = project_in.key or await generate_key(session, org, project_in.name)
    if await _key_taken(session, org.id, key):
        raise Conflict(f"A project with key {key} already exists in this organization")

    lead_id = project_in.lead_id or creator_id
    if not await is_org_member(session, org, lead_id):
        raise ValidationFailed(
            "Project lead must be a member of the organization",
            details=[{"field": "lead_id", "message": "Not an organization member", "type": "value_error"}],
        )

    project = Project(
        organization_id=org.id,
        name=project_in.name,
        key=key,
        description=project_in.description,
        lead_id=lead_id,
    )
    session.add(project)
    await session.flush()

    # Creator joins the project; the lead (usually the creator) gets LEAD.
    session.add(ProjectMember(project_id=project.id, user_id=lead_id, role=ProjectRole.LEAD.value))
    if lead_id != creator_id:
        session.add(
            ProjectMember(project_id=project.id, user_id=creator_id, role=ProjectRole.MEMBER.value)
        )
    await session.flush()

    log.info("project.created", org_id=str(org.id), project_id=str(project.id), key=key)
    return project


async def update_project(
    session: AsyncSession,
    org: Organization,
    project: Project,
    project_in: ProjectUpdate,
) -> Project:
    data = project_in.model_dump(exclude_unset=True)

    new_lead: Optional[uuid.UUID] = data.get("lead_id")
    if new_lead is not None and new_lead != project.lead_id:
        if not await is_org_member(session, org, new_lead):
            raise ValidationFailed(
                "Project lead must be a member of the organization",
                details=[{"field": "lead_id", "message": "Not an organization member", "type": "value_error"}],
            )
        await _promote_lead(session, project, new_lead)

    for field in ("name", "description", "lead_id", "is_active"):
        if field in data:
            setattr(project, field, data[field])

    session.add(project)
    await session.flush()
    await session.refresh(project)

    log.info("project.updated", project_id=str(project.id), fields=sorted(data))
    return project


async def _promote_lead(session: AsyncSession, project: Project, new_lead: uuid.UUID) -> None:
    """Keep project_members roles in step with the lead field."""
    result = await session.execute(
        select(ProjectMember).where(ProjectMember.project_id == project.id)
    )
    members = {m.user_id: m for m in result.scalars().all()}

    if project.lead_id in members:
        members[project.lead_id].role = ProjectRole.MEMBER.value
        session.add(members[project.lead_id])

    if new_lead in members:
        members[new_lead].role = ProjectRole.LEAD.value
        session.add(members[new_lead])
    else:
        session.add(ProjectMember(project_id=project.id, user_id=new_lead, role=ProjectRole.LEAD.value))


async def delete_project(session: AsyncSession, project: Project) -> None:
    tickets = await _count(session, Ticket, Ticket.project_id == project.id)
    sprints = await _count(session, Sprint, Sprint.project_id == project.id)
    if tickets or sprints:
        raise InvalidOperation(
            "Cannot delete a project that still has tickets or sprints. "
            "Move or delete them first, or archive the project."
        )

    result = await session.execute(
        select(ProjectMember).where(ProjectMember.project_id == project.id)
    )
    for member in result.scalars().all():
        await session.delete(member)
    await session.delete(project)
    await session.flush()

    log.info("project.deleted", project_id=str(project.id), org_id=str(project.organization_id))
