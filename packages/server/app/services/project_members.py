"""Project membership: list, add, remove."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.models.organization import Organization
from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.user import User
from app.services.projects import is_org_member
from issuetrack_shared.schemas.common import ProjectRole
from issuetrack_shared.schemas.projects import ProjectMemberAdd, ProjectMemberRead
from issuetrack_shared.schemas.users import UserSummary

log = structlog.get_logger()


def to_read(member: ProjectMember, user: User) -> ProjectMemberRead:
    return ProjectMemberRead(
        id=member.id,
        project_id=member.project_id,
        user_id=member.user_id,
        role=ProjectRole(member.role),
        joined_at=member.joined_at,
        user=UserSummary.model_validate(user),
    )


async def list_project_members(
    session: AsyncSession, project_id: uuid.UUID
) -> list[ProjectMemberRead]:
    lead_first = case((ProjectMember.role == ProjectRole.LEAD.value, 0), else_=1)
    result = await session.execute(
        select(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .where(ProjectMember.project_id == project_id)
        .order_by(lead_first, ProjectMember.joined_at)
    )
    return [to_read(member, user) for member, user in result.all()]


async def get_project_member_or_404(
    session: AsyncSession, project_id: uuid.UUID, member_id: uuid.UUID
) -> ProjectMember:
    member = await session.get(ProjectMember, member_id)
    if not member or member.project_id != project_id:
        raise NotFound("Project member not found")
    return member


async def add_project_member(
    session: AsyncSession,
    org: Organization,
    project: Project,
    req: ProjectMemberAdd,
) -> ProjectMemberRead:
    user = await session.get(User, req.user_id)
    if not user or not await is_org_member(session, org, req.user_id):
        raise ValidationFailed(
            "User must be a member of the organization",
            details=[{"field": "user_id", "message": "Not an organization member", "type": "value_error"}],
        )

    existing = await session.execute(
        select(ProjectMember.id).where(
            ProjectMember.project_id == project.id,
            ProjectMember.user_id == req.user_id,
        )
    )
    if existing.first() is not None:
        raise Conflict("User is already a member of this project")

    # Leadership only changes through the project's lead field
    role = ProjectRole.LEAD if project.lead_id == req.user_id else ProjectRole.MEMBER
    member = ProjectMember(project_id=project.id, user_id=req.user_id, role=role.value)
    session.add(member)
    await session.flush()

    log.info("project_member.added", project_id=str(project.id), user_id=str(req.user_id))
    return to_read(member, user)


async def remove_project_member(session: AsyncSession, member: ProjectMember) -> None:
    await session.delete(member)
    await session.flush()
    log.info(
        "project_member.removed",
        project_id=str(member.project_id),
        member_id=str(member.id),
        user_id=str(member.user_id),
    )
