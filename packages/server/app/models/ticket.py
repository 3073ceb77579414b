"""Ticket model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Ticket(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tickets"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "ticket_number", name="uq_ticket_org_number"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    project_id: Optional[uuid.UUID] = Field(default=None, foreign_key="projects.id", index=True)
    sprint_id: Optional[uuid.UUID] = Field(default=None, foreign_key="sprints.id", index=True)
    parent_id: Optional[uuid.UUID] = Field(default=None, foreign_key="tickets.id")

    ticket_number: int = Field(nullable=False)
    ticket_key: str = Field(nullable=False, index=True)  # e.g. ACME-42
    title: str = Field(nullable=False)
    description: Optional[str] = None
    type: str = Field(nullable=False)
    status: str = Field(default="TODO", nullable=False)
    priority: str = Field(default="MEDIUM", nullable=False)
    area: str = Field(default="DEVELOPMENT", nullable=False)
    story_points: Optional[int] = None
    due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))

    reporter_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    assignee_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
