"""Organization membership (user, organization) -> role."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class OrganizationMember(UUIDMixin, SQLModel, table=True):
    __tablename__ = "organization_members"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "organization_id", name="uq_org_member_user_org"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    role: str = Field(default="MEMBER", nullable=False)  # ADMIN | MEMBER
    joined_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
