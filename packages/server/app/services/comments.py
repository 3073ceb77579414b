"""Ticket comments."""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import AccessDenied, NotFound
from app.models.comment import Comment
from app.models.ticket import Ticket
from app.models.user import User
from app.services.tickets import record_activity
from issuetrack_shared.schemas.common import ActivityType
from issuetrack_shared.schemas.tickets import CommentCreate, CommentRead
from issuetrack_shared.schemas.users import UserSummary

log = structlog.get_logger()


def to_read(comment: Comment, author: User) -> CommentRead:
    return CommentRead(
        id=comment.id,
        ticket_id=comment.ticket_id,
        parent_id=comment.parent_id,
        content=comment.content,
        author=UserSummary.model_validate(author),
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


async def list_comments(session: AsyncSession, ticket_id: uuid.UUID) -> list[CommentRead]:
    result = await session.execute(
        select(Comment, User)
        .join(User, User.id == Comment.author_id)
        .where(Comment.ticket_id == ticket_id)
        .order_by(Comment.created_at)
    )
    return [to_read(comment, author) for comment, author in result.all()]


async def get_comment_or_404(
    session: AsyncSession, comment_id: uuid.UUID, ticket_id: uuid.UUID
) -> Comment:
    comment = await session.get(Comment, comment_id)
    if not comment or comment.ticket_id != ticket_id:
        raise NotFound("Comment not found")
    return comment


def require_author(comment: Comment, user_id: uuid.UUID) -> None:
    if comment.author_id != user_id:
        raise AccessDenied("You can only modify your own comments")


async def create_comment(
    session: AsyncSession, ticket: Ticket, comment_in: CommentCreate, author: User
) -> CommentRead:
    parent_id: Optional[uuid.UUID] = comment_in.parent_id
    if parent_id is not None:
        await get_comment_or_404(session, parent_id, ticket.id)

    comment = Comment(
        ticket_id=ticket.id,
        author_id=author.id,
        parent_id=parent_id,
        content=comment_in.content,
    )
    session.add(comment)
    await record_activity(
        session,
        org_id=ticket.organization_id,
        user_id=author.id,
        ticket_id=ticket.id,
        type=ActivityType.COMMENT_ADDED,
        description=f"Commented on {ticket.ticket_key}",
    )
    await session.flush()

    log.info("comment.created", ticket_key=ticket.ticket_key, comment_id=str(comment.id))
    return to_read(comment, author)


async def update_comment(
    session: AsyncSession, comment: Comment, content: str, author: User
) -> CommentRead:
    comment.content = content
    session.add(comment)
    await session.flush()
    await session.refresh(comment)
    return to_read(comment, author)


async def delete_comment(session: AsyncSession, comment: Comment) -> None:
    # Replies survive their parent as top-level comments
    await session.execute(
        update(Comment).where(Comment.parent_id == comment.id).values(parent_id=None)
    )
    await session.delete(comment)
    await session.flush()
    log.info("comment.deleted", comment_id=str(comment.id), ticket_id=str(comment.ticket_id))
