"""Sprint service."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFound
from app.models.project import Project
from app.models.sprint import Sprint
from app.models.ticket import Ticket
from issuetrack_shared.schemas.common import SprintStatus
from issuetrack_shared.schemas.tickets import SprintCreate, SprintRead

log = structlog.get_logger()


async def get_sprint_or_404(
    session: AsyncSession, sprint_id: uuid.UUID, project_id: uuid.UUID
) -> Sprint:
    sprint = await session.get(Sprint, sprint_id)
    if not sprint or sprint.project_id != project_id:
        raise NotFound("Sprint not found")
    return sprint


async def to_read(session: AsyncSession, sprint: Sprint) -> SprintRead:
    result = await session.execute(
        select(func.count()).select_from(Ticket).where(Ticket.sprint_id == sprint.id)
    )
    return SprintRead(
        id=sprint.id,
        organization_id=sprint.organization_id,
        project_id=sprint.project_id,
        name=sprint.name,
        goal=sprint.goal,
        status=SprintStatus(sprint.status),
        start_date=sprint.start_date,
        end_date=sprint.end_date,
        ticket_count=result.scalar_one(),
        created_at=sprint.created_at,
    )


async def list_sprints(
    session: AsyncSession, project_id: uuid.UUID, include_completed: bool = False
) -> list[Sprint]:
    stmt = select(Sprint).where(Sprint.project_id == project_id)
    if not include_completed:
        stmt = stmt.where(
            Sprint.status.in_([SprintStatus.PLANNED.value, SprintStatus.ACTIVE.value])
        )
    result = await session.execute(stmt.order_by(Sprint.start_date))
    return list(result.scalars().all())


async def create_sprint(
    session: AsyncSession, project: Project, sprint_in: SprintCreate
) -> Sprint:
    sprint = Sprint(
        organization_id=project.organization_id,
        project_id=project.id,
        name=sprint_in.name,
        goal=sprint_in.goal,
        status=SprintStatus.PLANNED.value,
        start_date=sprint_in.start_date,
        end_date=sprint_in.end_date,
    )
    session.add(sprint)
    await session.flush()
    log.info("sprint.created", project_id=str(project.id), sprint_id=str(sprint.id))
    return sprint
