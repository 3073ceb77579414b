from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, get_evaluator
from app.core.database import get_session
from app.core.permissions import PermissionEvaluator
from app.models.user import User
from app.services import organizations as org_service
from app.services import projects as project_service
from app.services import sprints as sprint_service
from issuetrack_shared.schemas.tickets import SprintCreate, SprintRead

router = APIRouter()


@router.get("", response_model=list[SprintRead])
async def list_sprints(
    org_id: uuid.UUID,
    project_id: uuid.UUID,
    include_completed: bool = Query(False),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_membership(user.id, org.id)
    project = await project_service.get_project_or_404(session, project_id, org.id)
    sprints = await sprint_service.list_sprints(session, project.id, include_completed)
    return [await sprint_service.to_read(session, s) for s in sprints]


@router.post("", response_model=SprintRead, status_code=201)
async def create_sprint(
    org_id: uuid.UUID,
    project_id: uuid.UUID,
    body: SprintCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    project = await project_service.get_project_or_404(session, project_id, org.id)
    await evaluator.require_membership(user.id, org.id)
    sprint = await sprint_service.create_sprint(session, project, body)
    return await sprint_service.to_read(session, sprint)
