"""
Organization API endpoints.

GET    /api/v1/organizations            — List orgs for the authenticated user
POST   /api/v1/organizations            — Create a new org (caller becomes owner)
GET    /api/v1/organizations/{org_id}   — Get org details
PUT    /api/v1/organizations/{org_id}   — Update org name/description/logo
DELETE /api/v1/organizations/{org_id}   — Delete org and its contents (owner only)
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
from app.services import organizations as org_service
from issuetrack_shared.schemas.common import Capability, MessageResponse
from issuetrack_shared.schemas.organizations import (
    OrgCreateRequest,
    OrgResponse,
    OrgUpdateRequest,
)

log = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=list[OrgResponse])
async def list_orgs(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Organizations the caller belongs to or owns, newest first."""
    orgs = await org_service.list_user_orgs(session, user.id)
    return [await org_service.to_response(session, org, user.id) for org in orgs]


@router.post("", response_model=OrgResponse, status_code=201)
async def create_org(
    body: OrgCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization owned by the caller."""
    org = await org_service.create_org(session, body, user.id)
    return await org_service.to_response(session, org, user.id)


@router.get("/{org_id}", response_model=OrgResponse)
async def get_org(
    org_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_membership(user.id, org.id)
    return await org_service.to_response(session, org, user.id)


@router.put("/{org_id}", response_model=OrgResponse)
async def update_org(
    org_id: uuid.UUID,
    body: OrgUpdateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_permission(user.id, org.id, Capability.MANAGE_ORGANIZATION)
    org = await org_service.update_org(session, org, body)
    return await org_service.to_response(session, org, user.id)


@router.delete("/{org_id}", response_model=MessageResponse)
async def delete_org(
    org_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
    cache: ProjectMetadataCache = Depends(get_project_cache),
):
    """Delete the organization. Only the owner holds canDeleteOrganization."""
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_permission(user.id, org.id, Capability.DELETE_ORGANIZATION)
    await org_service.delete_org(session, org)
    cache.invalidate_organization(org.id)
    return MessageResponse(message="Organization deleted successfully")
