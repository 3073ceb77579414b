"""
Ticket service layer: business logic for tickets, labels and activity.

Handles:
- Ticket CRUD with per-organization sequential keys (PREFIX-n)
- Filtering, searching, sorting and pagination for list views
- Reordering via synthetic updated_at timestamps
- Activity log entries for ticket changes
"""

from __future__ import annotations

import math
import uuid
from datetime import timedelta
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy import case, delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFound, ValidationFailed
from app.models.activity import Activity
from app.models.base import utcnow
from app.models.comment import Comment
from app.models.label import Label, TicketLabel
from app.models.organization import Organization
from app.models.project import Project
from app.models.sprint import Sprint
from app.models.ticket import Ticket
from app.services.projects import is_org_member
from issuetrack_shared.schemas.common import (
    ActivityType,
    Area,
    Pagination,
    Priority,
    TicketStatus,
    TicketType,
)
from issuetrack_shared.schemas.tickets import TicketCreate, TicketRead, TicketUpdate

log = structlog.get_logger()

SORTABLE_FIELDS = ("updated_at", "created_at", "priority", "ticket_number")

_PRIORITY_RANK = case(
    {p.value: rank for rank, p in enumerate(Priority)},
    value=Ticket.priority,
    else_=len(Priority),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_ticket_or_404(
    session: AsyncSession, ticket_id: uuid.UUID, org_id: uuid.UUID
) -> Ticket:
    ticket = await session.get(Ticket, ticket_id)
    if not ticket or ticket.organization_id != org_id:
        raise NotFound("Ticket not found")
    return ticket


async def record_activity(
    session: AsyncSession,
    *,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    type: ActivityType,
    description: str,
    ticket_id: Optional[uuid.UUID] = None,
    payload: Optional[dict[str, Any]] = None,
) -> Activity:
    activity = Activity(
        organization_id=org_id,
        ticket_id=ticket_id,
        user_id=user_id,
        type=type.value,
        description=description,
        payload=payload or {},
    )
    session.add(activity)
    return activity


async def _label_ids(session: AsyncSession, ticket_id: uuid.UUID) -> list[uuid.UUID]:
    result = await session.execute(
        select(TicketLabel.label_id).where(TicketLabel.ticket_id == ticket_id)
    )
    return [row[0] for row in result.all()]


async def to_read(session: AsyncSession, ticket: Ticket) -> TicketRead:
    comments = await session.execute(
        select(func.count()).select_from(Comment).where(Comment.ticket_id == ticket.id)
    )
    return TicketRead(
        id=ticket.id,
        organization_id=ticket.organization_id,
        project_id=ticket.project_id,
        sprint_id=ticket.sprint_id,
        parent_id=ticket.parent_id,
        ticket_number=ticket.ticket_number,
        ticket_key=ticket.ticket_key,
        title=ticket.title,
        description=ticket.description,
        type=TicketType(ticket.type),
        status=TicketStatus(ticket.status),
        priority=Priority(ticket.priority),
        area=Area(ticket.area),
        story_points=ticket.story_points,
        due_date=ticket.due_date,
        reporter_id=ticket.reporter_id,
        assignee_id=ticket.assignee_id,
        label_ids=await _label_ids(session, ticket.id),
        comment_count=comments.scalar_one(),
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
    )


async def to_reads(session: AsyncSession, tickets: Sequence[Ticket]) -> list[TicketRead]:
    return [await to_read(session, t) for t in tickets]


async def _validate_references(
    session: AsyncSession,
    org: Organization,
    *,
    project_id: Optional[uuid.UUID],
    sprint_id: Optional[uuid.UUID] = None,
    parent_id: Optional[uuid.UUID] = None,
    assignee_id: Optional[uuid.UUID] = None,
    label_ids: Optional[list[uuid.UUID]] = None,
    ticket_id: Optional[uuid.UUID] = None,
) -> None:
    """Every referenced row must exist inside ``org``."""
    if project_id is not None:
        project = await session.get(Project, project_id)
        if not project or project.organization_id != org.id:
            raise NotFound("Project not found")

    if sprint_id is not None:
        sprint = await session.get(Sprint, sprint_id)
        if not sprint or sprint.organization_id != org.id:
            raise NotFound("Sprint not found")
        if project_id is not None and sprint.project_id != project_id:
            raise ValidationFailed("Sprint belongs to a different project")

    if parent_id is not None:
        if ticket_id is not None and parent_id == ticket_id:
            raise ValidationFailed("A ticket cannot be its own parent")
        parent = await session.get(Ticket, parent_id)
        if not parent or parent.organization_id != org.id:
            raise NotFound("Parent ticket not found")

    if assignee_id is not None and not await is_org_member(session, org, assignee_id):
        raise ValidationFailed(
            "Assignee must be a member of the organization",
            details=[{"field": "assignee_id", "message": "Not an organization member", "type": "value_error"}],
        )

    if label_ids:
        result = await session.execute(
            select(func.count()).select_from(Label).where(
                Label.id.in_(set(label_ids)), Label.organization_id == org.id
            )
        )
        if result.scalar_one() != len(set(label_ids)):
            raise NotFound("Label not found")


async def _set_labels(session: AsyncSession, ticket_id: uuid.UUID, label_ids: list[uuid.UUID]) -> None:
    await session.execute(delete(TicketLabel).where(TicketLabel.ticket_id == ticket_id))
    for label_id in dict.fromkeys(label_ids):
        session.add(TicketLabel(ticket_id=ticket_id, label_id=label_id))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_tickets(
    session: AsyncSession,
    org_id: uuid.UUID,
    *,
    project_id: Optional[uuid.UUID] = None,
    status: Optional[TicketStatus] = None,
    type: Optional[TicketType] = None,
    priority: Optional[Priority] = None,
    assignee_id: Optional[uuid.UUID] = None,
    sprint_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    sort_by: str = "updated_at",
    sort_order: str = "desc",
) -> tuple[list[Ticket], Pagination]:
    criteria = [Ticket.organization_id == org_id]
    if project_id is not None:
        criteria.append(Ticket.project_id == project_id)
    if status is not None:
        criteria.append(Ticket.status == status.value)
    if type is not None:
        criteria.append(Ticket.type == type.value)
    if priority is not None:
        criteria.append(Ticket.priority == priority.value)
    if assignee_id is not None:
        criteria.append(Ticket.assignee_id == assignee_id)
    if sprint_id is not None:
        criteria.append(Ticket.sprint_id == sprint_id)
    if search:
        pattern = f"%{search}%"
        criteria.append(or_(Ticket.title.ilike(pattern), Ticket.ticket_key.ilike(pattern)))

    total_result = await session.execute(
        select(func.count()).select_from(Ticket).where(*criteria)
    )
    total = total_result.scalar_one()

    if sort_by not in SORTABLE_FIELDS:
        raise ValidationFailed(f"Cannot sort by {sort_by!r}")
    column = _PRIORITY_RANK if sort_by == "priority" else getattr(Ticket, sort_by)
    # Priority rank ascends from HIGHEST, so "desc" means most urgent first
    if sort_by == "priority":
        ordering = column.asc() if sort_order == "desc" else column.desc()
    else:
        ordering = column.desc() if sort_order == "desc" else column.asc()

    result = await session.execute(
        select(Ticket)
        .where(*criteria)
        .order_by(ordering, Ticket.ticket_number.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    pagination = Pagination(
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if limit else 0,
    )
    return list(result.scalars().all()), pagination


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_ticket(
    session: AsyncSession,
    org: Organization,
    ticket_in: TicketCreate,
    reporter_id: uuid.UUID,
) -> Ticket:
    await _validate_references(
        session,
        org,
        project_id=ticket_in.project_id,
        sprint_id=ticket_in.sprint_id,
        parent_id=ticket_in.parent_id,
        assignee_id=ticket_in.assignee_id,
        label_ids=ticket_in.label_ids,
    )

    result = await session.execute(
        select(func.max(Ticket.ticket_number)).where(Ticket.organization_id == org.id)
    )
    number = (result.scalar_one() or 0) + 1

    ticket = Ticket(
        organization_id=org.id,
        project_id=ticket_in.project_id,
        sprint_id=ticket_in.sprint_id,
        parent_id=ticket_in.parent_id,
        ticket_number=number,
        ticket_key=f"{org.ticket_prefix}-{number}",
        title=ticket_in.title,
        description=ticket_in.description,
        type=ticket_in.type.value,
        priority=ticket_in.priority.value,
        area=ticket_in.area.value,
        story_points=ticket_in.story_points,
        due_date=ticket_in.due_date,
        reporter_id=reporter_id,
        assignee_id=ticket_in.assignee_id,
    )
    session.add(ticket)
    await session.flush()

    if ticket_in.label_ids:
        await _set_labels(session, ticket.id, ticket_in.label_ids)

    await record_activity(
        session,
        org_id=org.id,
        user_id=reporter_id,
        ticket_id=ticket.id,
        type=ActivityType.TICKET_CREATED,
        description=f"Created ticket {ticket.ticket_key}",
    )
    await session.flush()

    log.info("ticket.created", org_id=str(org.id), ticket_key=ticket.ticket_key)
    return ticket


async def update_ticket(
    session: AsyncSession,
    org: Organization,
    ticket: Ticket,
    ticket_in: TicketUpdate,
    user_id: uuid.UUID,
) -> Ticket:
    data = ticket_in.model_dump(exclude_unset=True)
    label_ids = data.pop("label_ids", None)

    await _validate_references(
        session,
        org,
        project_id=ticket.project_id,
        sprint_id=data.get("sprint_id"),
        parent_id=data.get("parent_id"),
        assignee_id=data.get("assignee_id"),
        label_ids=label_ids,
        ticket_id=ticket.id,
    )

    changed: list[str] = []
    for field, value in data.items():
        if hasattr(value, "value"):
            value = value.value
        if getattr(ticket, field) != value:
            setattr(ticket, field, value)
            changed.append(field)

    if label_ids is not None:
        if set(label_ids) != set(await _label_ids(session, ticket.id)):
            changed.append("label_ids")
        await _set_labels(session, ticket.id, label_ids)

    if changed:
        session.add(ticket)
        await record_activity(
            session,
            org_id=org.id,
            user_id=user_id,
            ticket_id=ticket.id,
            type=ActivityType.TICKET_UPDATED,
            description=f"Updated {', '.join(changed)} on {ticket.ticket_key}",
            payload={"fields": changed},
        )
        await session.flush()
        await session.refresh(ticket)
        log.info("ticket.updated", ticket_key=ticket.ticket_key, fields=changed)

    return ticket


async def delete_ticket(session: AsyncSession, ticket: Ticket) -> None:
    await session.execute(
        update(Ticket).where(Ticket.parent_id == ticket.id).values(parent_id=None)
    )
    await session.execute(delete(Comment).where(Comment.ticket_id == ticket.id))
    await session.execute(delete(TicketLabel).where(TicketLabel.ticket_id == ticket.id))
    await session.execute(delete(Activity).where(Activity.ticket_id == ticket.id))
    await session.delete(ticket)
    await session.flush()
    log.info("ticket.deleted", ticket_key=ticket.ticket_key, org_id=str(ticket.organization_id))


async def reorder_tickets(
    session: AsyncSession,
    project: Project,
    ticket_ids: list[uuid.UUID],
    user_id: uuid.UUID,
    sprint_id: Optional[uuid.UUID] = None,
) -> int:
    """Persist a display order by giving each ticket ``base + i`` seconds as updated_at.

    There is no order column; the listed order becomes ascending
    ``updated_at`` order.
    """
    if len(set(ticket_ids)) != len(ticket_ids):
        raise ValidationFailed("ticket_ids must not contain duplicates")

    result = await session.execute(
        select(Ticket).where(
            Ticket.id.in_(ticket_ids),
            Ticket.organization_id == project.organization_id,
            Ticket.project_id == project.id,
        )
    )
    tickets = {t.id: t for t in result.scalars().all()}
    if len(tickets) != len(ticket_ids):
        raise NotFound("Some tickets not found in this project")

    base = utcnow()
    for index, ticket_id in enumerate(ticket_ids):
        ticket = tickets[ticket_id]
        ticket.updated_at = base + timedelta(seconds=index)
        session.add(ticket)

    where = "in sprint" if sprint_id else "in backlog"
    await record_activity(
        session,
        org_id=project.organization_id,
        user_id=user_id,
        ticket_id=ticket_ids[0],
        type=ActivityType.TICKETS_REORDERED,
        description=f"Reordered {len(ticket_ids)} tickets {where}",
        payload={
            "ticket_ids": [str(t) for t in ticket_ids],
            "sprint_id": str(sprint_id) if sprint_id else None,
            "project_id": str(project.id),
        },
    )
    await session.flush()

    log.info("tickets.reordered", project_id=str(project.id), count=len(ticket_ids))
    return len(ticket_ids)
