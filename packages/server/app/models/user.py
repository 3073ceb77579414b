"""User model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    name: str = Field(nullable=False)
    password_hash: Optional[str] = Field(default=None)  # None for OAuth-only accounts
    avatar_url: Optional[str] = None
    is_active: bool = Field(default=True, nullable=False)
