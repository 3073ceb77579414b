from typing import Optional
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from .common import ProjectRole
from .users import UserSummary


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    lead_id: Optional[UUID] = None
    key: Optional[str] = Field(default=None, min_length=2, max_length=10, pattern=r"^[A-Z0-9]+$")


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    lead_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class ProjectRead(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    key: str
    description: Optional[str] = None
    lead_id: Optional[UUID] = None
    is_active: bool = True
    ticket_count: int = 0
    sprint_count: int = 0
    member_count: int = 0
    created_at: datetime
    updated_at: datetime


class ProjectDetail(ProjectRead):
    """Project navigation payload plus the caller's relationship to it."""
    user_role: Optional[ProjectRole] = None
    is_user_member: bool = False


class ProjectMemberAdd(BaseModel):
    model_config = {"extra": "forbid"}

    user_id: UUID


class ProjectMemberRead(BaseModel):
    id: UUID
    project_id: UUID
    user_id: UUID
    role: ProjectRole
    joined_at: datetime
    user: UserSummary


def derive_project_key(name: str) -> str:
    """Uppercase alphanumerics of the name, truncated to 10 characters."""
    return "".join(ch for ch in name.upper() if ch.isascii() and ch.isalnum())[:10]
