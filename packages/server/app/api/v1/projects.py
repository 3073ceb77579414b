"""
Project endpoints, scoped to an organization.

The project detail read goes through the project metadata cache. Membership
and permission checks always run first and are never cached.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, get_evaluator
from app.core.cache import ProjectMetadataCache, get_project_cache
from app.core.database import get_session
from app.core.errors import AccessDenied
from app.core.permissions import PermissionEvaluator
from app.models.user import User
from app.services import organizations as org_service
from app.services import projects as project_service
from app.services import tickets as ticket_service
from issuetrack_shared.schemas.common import Capability, MessageResponse
from issuetrack_shared.schemas.projects import (
    ProjectCreate,
    ProjectDetail,
    ProjectRead,
    ProjectUpdate,
)
from issuetrack_shared.schemas.tickets import TicketReorder

log = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=list[ProjectRead])
async def list_projects(
    org_id: uuid.UUID,
    include_inactive: bool = Query(False),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_membership(user.id, org.id)
    projects = await project_service.list_projects(session, org.id, include_inactive)
    return [await project_service.to_read(session, p) for p in projects]


@router.post("", response_model=ProjectRead, status_code=201)
async def create_project(
    org_id: uuid.UUID,
    body: ProjectCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_permission(user.id, org.id, Capability.CREATE_PROJECTS)
    project = await project_service.create_project(session, org, body, user.id)
    return await project_service.to_read(session, project)


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project(
    org_id: uuid.UUID,
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    cache: ProjectMetadataCache = Depends(get_project_cache),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_membership(user.id, org.id)

    async def load() -> ProjectRead:
        project = await project_service.get_project_or_404(session, project_id, org.id)
        return await project_service.to_read(session, project)

    metadata = await cache.get_or_load(org.id, project_id, load)
    return await project_service.to_detail(session, metadata, user.id)


@router.put("/{project_id}", response_model=ProjectRead)
async def update_project(
    org_id: uuid.UUID,
    project_id: uuid.UUID,
    body: ProjectUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    cache: ProjectMetadataCache = Depends(get_project_cache),
):
    """Admins with canManageProjects, or the project's lead, may edit."""
    org = await org_service.get_org_or_404(session, org_id)
    project = await project_service.get_project_or_404(session, project_id, org.id)

    decision = await evaluator.check_permission(user.id, org.id, Capability.MANAGE_PROJECTS)
    if not decision:
        await evaluator.require_membership(user.id, org.id)
        if not await evaluator.is_project_lead(user.id, project.id):
            raise AccessDenied("Only admins or the project lead can update this project")

    project = await project_service.update_project(session, org, project, body)
    cache.invalidate(org.id, project.id)
    return await project_service.to_read(session, project)


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    org_id: uuid.UUID,
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    cache: ProjectMetadataCache = Depends(get_project_cache),
):
    org = await org_service.get_org_or_404(session, org_id)
    project = await project_service.get_project_or_404(session, project_id, org.id)
    await evaluator.require_permission(user.id, org.id, Capability.DELETE_PROJECTS)

    await project_service.delete_project(session, project)
    cache.invalidate(org.id, project_id)
    return MessageResponse(message="Project deleted successfully")


@router.post("/{project_id}/tickets/reorder")
async def reorder_tickets(
    org_id: uuid.UUID,
    project_id: uuid.UUID,
    body: TicketReorder,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    cache: ProjectMetadataCache = Depends(get_project_cache),
):
    """Persist a manual ticket order (backlog or sprint view)."""
    org = await org_service.get_org_or_404(session, org_id)
    project = await project_service.get_project_or_404(session, project_id, org.id)
    await evaluator.require_membership(user.id, org.id)

    count = await ticket_service.reorder_tickets(
        session, project, body.ticket_ids, user.id, sprint_id=body.sprint_id
    )
    cache.invalidate(org.id, project.id)
    return {"success": True, "count": count}
