"""
Project member endpoints.

Adding and removing project members is reserved for the project's lead; an
organization admin who is not the lead is refused.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, get_evaluator
from app.core.cache import ProjectMetadataCache, get_project_cache
from app.core.database import get_session
from app.core.errors import AccessDenied
from app.core.permissions import PermissionEvaluator
from app.models.user import User
from app.services import organizations as org_service
from app.services import project_members as project_member_service
from app.services import projects as project_service
from issuetrack_shared.schemas.common import MessageResponse
from issuetrack_shared.schemas.projects import ProjectMemberAdd, ProjectMemberRead

router = APIRouter()


@router.get("", response_model=list[ProjectMemberRead])
async def list_project_members(
    org_id: uuid.UUID,
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    # Membership first so outsiders can't tell which project ids exist
    await evaluator.require_membership(user.id, org.id)
    project = await project_service.get_project_or_404(session, project_id, org.id)
    return await project_member_service.list_project_members(session, project.id)


@router.post("", response_model=ProjectMemberRead, status_code=201)
async def add_project_member(
    org_id: uuid.UUID,
    project_id: uuid.UUID,
    body: ProjectMemberAdd,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    cache: ProjectMetadataCache = Depends(get_project_cache),
):
    org = await org_service.get_org_or_404(session, org_id)
    project = await project_service.get_project_or_404(session, project_id, org.id)
    await evaluator.require_membership(user.id, org.id)
    if not await evaluator.is_project_lead(user.id, project.id):
        raise AccessDenied("Only the project lead can add project members")

    member = await project_member_service.add_project_member(session, org, project, body)
    cache.invalidate(org.id, project.id)
    return member


@router.delete("/{member_id}", response_model=MessageResponse)
async def remove_project_member(
    org_id: uuid.UUID,
    project_id: uuid.UUID,
    member_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    cache: ProjectMetadataCache = Depends(get_project_cache),
):
    org = await org_service.get_org_or_404(session, org_id)
    project = await project_service.get_project_or_404(session, project_id, org.id)
    member = await project_member_service.get_project_member_or_404(session, project.id, member_id)

    decision = await evaluator.check_project_member_removal(user.id, org.id, project, member.user_id)
    decision.raise_for_denial()

    await project_member_service.remove_project_member(session, member)
    cache.invalidate(org.id, project.id)
    return MessageResponse(message="Project member removed successfully")
