"""Pending invitation for an email address that has no account yet."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Invitation(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "invitations"

    email: str = Field(nullable=False, index=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    role: str = Field(default="MEMBER", nullable=False)
    invited_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    accepted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
