# SQLModel definitions: imported here to ensure metadata is populated for create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .organization_member import OrganizationMember  # noqa: F401
from .invitation import Invitation  # noqa: F401
from .project import Project  # noqa: F401
from .project_member import ProjectMember  # noqa: F401
from .sprint import Sprint  # noqa: F401
from .ticket import Ticket  # noqa: F401
from .label import Label, TicketLabel  # noqa: F401
from .comment import Comment  # noqa: F401
from .activity import Activity  # noqa: F401
