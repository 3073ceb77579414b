from enum import Enum
from typing import Optional, List
from pydantic import BaseModel

class MemberRole(str, Enum):
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"

class ProjectRole(str, Enum):
    LEAD = "LEAD"
    MEMBER = "MEMBER"

class Capability(str, Enum):
    # Organization
    MANAGE_ORGANIZATION = "canManageOrganization"
    INVITE_MEMBERS = "canInviteMembers"
    REMOVE_MEMBERS = "canRemoveMembers"
    CHANGE_ROLES = "canChangeRoles"
    DELETE_ORGANIZATION = "canDeleteOrganization"
    # Projects
    CREATE_PROJECTS = "canCreateProjects"
    DELETE_PROJECTS = "canDeleteProjects"
    MANAGE_PROJECTS = "canManageProjects"
    # Tickets
    CREATE_TICKETS = "canCreateTickets"
    EDIT_ALL_TICKETS = "canEditAllTickets"
    DELETE_TICKETS = "canDeleteTickets"
    ASSIGN_TICKETS = "canAssignTickets"
    # Sprints
    CREATE_SPRINTS = "canCreateSprints"
    MANAGE_SPRINTS = "canManageSprints"
    START_SPRINTS = "canStartSprints"
    COMPLETE_SPRINTS = "canCompleteSprints"
    # Labels
    CREATE_LABELS = "canCreateLabels"
    MANAGE_LABELS = "canManageLabels"

class TicketType(str, Enum):
    BUG = "BUG"
    TASK = "TASK"
    STORY = "STORY"
    EPIC = "EPIC"

class TicketStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    ON_HOLD = "ON_HOLD"
    READY_TO_DEPLOY = "READY_TO_DEPLOY"
    REVIEW_PROD = "REVIEW_PROD"
    DONE = "DONE"

class Priority(str, Enum):
    HIGHEST = "HIGHEST"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    LOWEST = "LOWEST"

class Area(str, Enum):
    DEVELOPMENT = "DEVELOPMENT"
    DESIGN = "DESIGN"
    PRODUCT = "PRODUCT"
    RESEARCH = "RESEARCH"

class SprintStatus(str, Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"

class ActivityType(str, Enum):
    TICKET_CREATED = "TICKET_CREATED"
    TICKET_UPDATED = "TICKET_UPDATED"
    TICKET_ASSIGNED = "TICKET_ASSIGNED"
    TICKET_STATUS_CHANGED = "TICKET_STATUS_CHANGED"
    COMMENT_ADDED = "COMMENT_ADDED"
    SPRINT_CHANGED = "SPRINT_CHANGED"
    TICKETS_REORDERED = "TICKETS_REORDERED"

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

class MessageResponse(BaseModel):
    message: str

class ErrorDetail(BaseModel):
    field: str
    message: str
    type: Optional[str] = None

class ErrorBody(BaseModel):
    code: str
    message: str
    status: int
    details: Optional[List[ErrorDetail]] = None

class ErrorResponse(BaseModel):
    error: ErrorBody
