"""Project model."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "key", name="uq_project_org_key"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    name: str = Field(nullable=False)
    key: str = Field(nullable=False, max_length=10)
    description: Optional[str] = None
    lead_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    is_active: bool = Field(default=True, nullable=False)
