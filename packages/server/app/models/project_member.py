"""Project membership (user, project) -> LEAD | MEMBER."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class ProjectMember(UUIDMixin, SQLModel, table=True):
    __tablename__ = "project_members"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_member_project_user"),
    )

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(default="MEMBER", nullable=False)  # LEAD | MEMBER
    joined_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
