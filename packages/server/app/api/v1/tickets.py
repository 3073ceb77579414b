"""
Ticket endpoints.

GET    /organizations/{org_id}/tickets              — filtered, paginated list
POST   /organizations/{org_id}/tickets              — create (key PREFIX-n)
GET    /organizations/{org_id}/tickets/{ticket_id}  — detail
PATCH  /organizations/{org_id}/tickets/{ticket_id}  — partial update
DELETE /organizations/{org_id}/tickets/{ticket_id}  — delete
"""

from __future__ import annotations

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, get_evaluator
from app.core.database import get_session
from app.core.permissions import PermissionEvaluator
from app.models.user import User
from app.services import organizations as org_service
from app.services import tickets as ticket_service
from issuetrack_shared.schemas.common import (
    Capability,
    MessageResponse,
    Priority,
    TicketStatus,
    TicketType,
)
from issuetrack_shared.schemas.tickets import (
    TicketCreate,
    TicketListResponse,
    TicketRead,
    TicketUpdate,
)

router = APIRouter()


@router.get("", response_model=TicketListResponse)
async def list_tickets(
    org_id: uuid.UUID,
    project_id: Optional[uuid.UUID] = None,
    status: Optional[TicketStatus] = None,
    type: Optional[TicketType] = None,
    priority: Optional[Priority] = None,
    assignee_id: Optional[uuid.UUID] = None,
    sprint_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    sort_by: Literal["updated_at", "created_at", "priority", "ticket_number"] = "updated_at",
    sort_order: Literal["asc", "desc"] = "desc",
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_membership(user.id, org.id)

    tickets, pagination = await ticket_service.list_tickets(
        session,
        org.id,
        project_id=project_id,
        status=status,
        type=type,
        priority=priority,
        assignee_id=assignee_id,
        sprint_id=sprint_id,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return TicketListResponse(
        tickets=await ticket_service.to_reads(session, tickets),
        pagination=pagination,
    )


@router.post("", response_model=TicketRead, status_code=201)
async def create_ticket(
    org_id: uuid.UUID,
    body: TicketCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_permission(user.id, org.id, Capability.CREATE_TICKETS)
    ticket = await ticket_service.create_ticket(session, org, body, user.id)
    return await ticket_service.to_read(session, ticket)


@router.get("/{ticket_id}", response_model=TicketRead)
async def get_ticket(
    org_id: uuid.UUID,
    ticket_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_membership(user.id, org.id)
    ticket = await ticket_service.get_ticket_or_404(session, ticket_id, org.id)
    return await ticket_service.to_read(session, ticket)


@router.patch("/{ticket_id}", response_model=TicketRead)
async def update_ticket(
    org_id: uuid.UUID,
    ticket_id: uuid.UUID,
    body: TicketUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    ticket = await ticket_service.get_ticket_or_404(session, ticket_id, org.id)
    await evaluator.require_membership(user.id, org.id)
    ticket = await ticket_service.update_ticket(session, org, ticket, body, user.id)
    return await ticket_service.to_read(session, ticket)


@router.delete("/{ticket_id}", response_model=MessageResponse)
async def delete_ticket(
    org_id: uuid.UUID,
    ticket_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    ticket = await ticket_service.get_ticket_or_404(session, ticket_id, org.id)
    await evaluator.require_membership(user.id, org.id)
    await ticket_service.delete_ticket(session, ticket)
    return MessageResponse(message="Ticket deleted successfully")
