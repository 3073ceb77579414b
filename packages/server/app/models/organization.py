"""Organization model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, index=True)
    slug: str = Field(unique=True, nullable=False, index=True)
    ticket_prefix: str = Field(unique=True, nullable=False, max_length=5)
    description: Optional[str] = None
    logo_url: Optional[str] = None
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    is_active: bool = Field(default=True, nullable=False)
