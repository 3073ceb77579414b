"""Ticket comment endpoints. Editing and deleting is limited to the author."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, get_evaluator
from app.core.database import get_session
from app.core.permissions import PermissionEvaluator
from app.models.user import User
from app.services import comments as comment_service
from app.services import organizations as org_service
from app.services import tickets as ticket_service
from issuetrack_shared.schemas.common import MessageResponse
from issuetrack_shared.schemas.tickets import CommentCreate, CommentRead, CommentUpdate

router = APIRouter()


@router.get("", response_model=list[CommentRead])
async def list_comments(
    org_id: uuid.UUID,
    ticket_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    await evaluator.require_membership(user.id, org.id)
    ticket = await ticket_service.get_ticket_or_404(session, ticket_id, org.id)
    return await comment_service.list_comments(session, ticket.id)


@router.post("", response_model=CommentRead, status_code=201)
async def create_comment(
    org_id: uuid.UUID,
    ticket_id: uuid.UUID,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    ticket = await ticket_service.get_ticket_or_404(session, ticket_id, org.id)
    await evaluator.require_membership(user.id, org.id)
    return await comment_service.create_comment(session, ticket, body, user)


@router.patch("/{comment_id}", response_model=CommentRead)
async def update_comment(
    org_id: uuid.UUID,
    ticket_id: uuid.UUID,
    comment_id: uuid.UUID,
    body: CommentUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    ticket = await ticket_service.get_ticket_or_404(session, ticket_id, org.id)
    comment = await comment_service.get_comment_or_404(session, comment_id, ticket.id)
    await evaluator.require_membership(user.id, org.id)
    comment_service.require_author(comment, user.id)
    return await comment_service.update_comment(session, comment, body.content, user)


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    org_id: uuid.UUID,
    ticket_id: uuid.UUID,
    comment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
):
    org = await org_service.get_org_or_404(session, org_id)
    ticket = await ticket_service.get_ticket_or_404(session, ticket_id, org.id)
    comment = await comment_service.get_comment_or_404(session, comment_id, ticket.id)
    await evaluator.require_membership(user.id, org.id)
    comment_service.require_author(comment, user.id)
    await comment_service.delete_comment(session, comment)
    return MessageResponse(message="Comment deleted successfully")
