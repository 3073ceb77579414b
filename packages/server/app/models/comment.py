"""Ticket comment model (optionally threaded via parent_id)."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Comment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "comments"

    ticket_id: uuid.UUID = Field(foreign_key="tickets.id", nullable=False, index=True)
    author_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    parent_id: Optional[uuid.UUID] = Field(default=None, foreign_key="comments.id")
    content: str = Field(nullable=False)
