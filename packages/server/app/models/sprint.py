"""Sprint model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Sprint(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "sprints"

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    name: str = Field(nullable=False)
    goal: Optional[str] = None
    status: str = Field(default="PLANNED", nullable=False)  # PLANNED | ACTIVE | COMPLETED
    start_date: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    end_date: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
