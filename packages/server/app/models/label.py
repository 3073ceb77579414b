"""Labels and the ticket <-> label join table."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Label(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "labels"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "name", name="uq_label_org_name"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    name: str = Field(nullable=False)
    color: Optional[str] = None


class TicketLabel(SQLModel, table=True):
    __tablename__ = "ticket_labels"

    ticket_id: uuid.UUID = Field(foreign_key="tickets.id", primary_key=True)
    label_id: uuid.UUID = Field(foreign_key="labels.id", primary_key=True)
