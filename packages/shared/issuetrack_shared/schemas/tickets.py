"""Ticket, sprint and comment schemas shared between server and frontend codegen."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic import UUID4

from .common import Area, Pagination, Priority, SprintStatus, TicketStatus, TicketType
from .users import UserSummary


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------

class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    type: TicketType
    priority: Priority = Priority.MEDIUM
    area: Area = Area.DEVELOPMENT
    project_id: Optional[UUID4] = None
    assignee_id: Optional[UUID4] = None
    sprint_id: Optional[UUID4] = None
    parent_id: Optional[UUID4] = None
    story_points: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None
    label_ids: List[UUID4] = Field(default_factory=list)


class TicketUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[TicketType] = None
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    area: Optional[Area] = None
    assignee_id: Optional[UUID4] = None
    sprint_id: Optional[UUID4] = None
    parent_id: Optional[UUID4] = None
    story_points: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None
    label_ids: Optional[List[UUID4]] = None


class TicketRead(BaseModel):
    id: UUID4
    organization_id: UUID4
    project_id: Optional[UUID4] = None
    sprint_id: Optional[UUID4] = None
    parent_id: Optional[UUID4] = None
    ticket_number: int
    ticket_key: str
    title: str
    description: Optional[str] = None
    type: TicketType
    status: TicketStatus
    priority: Priority
    area: Area
    story_points: Optional[int] = None
    due_date: Optional[datetime] = None
    reporter_id: UUID4
    assignee_id: Optional[UUID4] = None
    label_ids: List[UUID4] = Field(default_factory=list)
    comment_count: int = 0
    created_at: datetime
    updated_at: datetime


class TicketListResponse(BaseModel):
    tickets: List[TicketRead]
    pagination: Pagination


class TicketReorder(BaseModel):
    """Request body for POST /projects/{projectId}/tickets/reorder."""
    ticket_ids: List[UUID4] = Field(min_length=1)
    sprint_id: Optional[UUID4] = None


# ---------------------------------------------------------------------------
# Sprints
# ---------------------------------------------------------------------------

class SprintCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    start_date: datetime
    end_date: datetime
    goal: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "SprintCreate":
        if self.start_date >= self.end_date:
            raise ValueError("End date must be after start date")
        return self


class SprintRead(BaseModel):
    id: UUID4
    organization_id: UUID4
    project_id: UUID4
    name: str
    goal: Optional[str] = None
    status: SprintStatus
    start_date: datetime
    end_date: datetime
    ticket_count: int = 0
    created_at: datetime


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class CommentCreate(BaseModel):
    content: str = Field(min_length=1)
    parent_id: Optional[UUID4] = None


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1)


class CommentRead(BaseModel):
    id: UUID4
    ticket_id: UUID4
    parent_id: Optional[UUID4] = None
    content: str
    author: UserSummary
    created_at: datetime
    updated_at: datetime
