"""Append-only activity log."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Activity(UUIDMixin, SQLModel, table=True):
    __tablename__ = "activities"

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    ticket_id: Optional[uuid.UUID] = Field(default=None, foreign_key="tickets.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    type: str = Field(nullable=False)
    description: str = Field(nullable=False)
    payload: dict = Field(default_factory=dict, sa_type=sa.JSON, nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
