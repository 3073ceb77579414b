"""
Permission evaluation for organizations and projects.

Every authorization decision in the API goes through ``PermissionEvaluator``.
It reads ownership and membership fresh from a ``MembershipStore`` on every
call (nothing here is cached) and answers with a ``Decision``. Route code
either inspects the decision or calls the matching ``require_*`` method,
which raises the ``AppError`` subclass named by the decision's kind.

Rules:

- The organization owner holds every capability, whatever their membership
  row says (absent, MEMBER, or anything else).
- Anyone else needs a membership row; the stored role's grants decide.
- The owner's membership can never be changed or removed through the
  membership routes, and a project's lead can never be removed through the
  project-member routes.
- Leaving an organization yourself does not need ``canRemoveMembers``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import Settings, get_settings
from app.core.errors import AppError, ErrorKind, error_from_kind
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember
from app.models.project import Project
from issuetrack_shared.schemas.common import Capability, MemberRole

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Role grants
# ---------------------------------------------------------------------------

ROLE_CAPABILITIES: dict[MemberRole, frozenset[Capability]] = {
    MemberRole.ADMIN: frozenset(Capability) - {Capability.DELETE_ORGANIZATION},
    MemberRole.MEMBER: frozenset({Capability.CREATE_TICKETS}),
}


def _coerce_capability(capability: Capability | str) -> Capability:
    try:
        return Capability(capability)
    except ValueError:
        raise ValueError(f"Unknown capability: {capability!r}") from None


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Decision:
    """Outcome of a permission check: allowed, or the kind of error to raise."""

    allowed: bool
    kind: Optional[ErrorKind] = None
    reason: str = ""

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, kind: ErrorKind, reason: str) -> "Decision":
        return cls(allowed=False, kind=kind, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed

    def to_error(self) -> AppError:
        if self.allowed or self.kind is None:
            raise RuntimeError("An allowed decision carries no error")
        return error_from_kind(self.kind, self.reason)

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise self.to_error()


# ---------------------------------------------------------------------------
# Membership store
# ---------------------------------------------------------------------------

class MembershipStore(Protocol):
    """Read-only lookups the evaluator needs."""

    async def get_organization(self, org_id: uuid.UUID) -> Optional[Organization]: ...

    async def get_org_membership(
        self, user_id: uuid.UUID, org_id: uuid.UUID
    ) -> Optional[OrganizationMember]: ...

    async def get_project(self, project_id: uuid.UUID) -> Optional[Project]: ...


class SqlMembershipStore:
    """``MembershipStore`` backed by the request's database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_organization(self, org_id: uuid.UUID) -> Optional[Organization]:
        return await self.session.get(Organization, org_id)

    async def get_org_membership(
        self, user_id: uuid.UUID, org_id: uuid.UUID
    ) -> Optional[OrganizationMember]:
        result = await self.session.execute(
            select(OrganizationMember).where(
                OrganizationMember.user_id == user_id,
                OrganizationMember.organization_id == org_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_project(self, project_id: uuid.UUID) -> Optional[Project]:
        return await self.session.get(Project, project_id)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

class PermissionEvaluator:
    def __init__(self, store: MembershipStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def grants_for(self, role: str | MemberRole) -> frozenset[Capability]:
        """Capabilities granted by a stored role value. Unknown roles grant nothing."""
        try:
            member_role = MemberRole(role)
        except ValueError:
            return frozenset()
        grants = ROLE_CAPABILITIES[member_role]
        if member_role is MemberRole.MEMBER and self.settings.member_extra_capabilities:
            grants = grants | frozenset(self.settings.member_extra_capabilities)
        return grants

    # -- lookups ------------------------------------------------------------

    async def is_owner(self, user_id: uuid.UUID, org_id: uuid.UUID) -> bool:
        org = await self.store.get_organization(org_id)
        return org is not None and org.owner_id == user_id

    async def is_project_lead(self, user_id: uuid.UUID, project_id: uuid.UUID) -> bool:
        project = await self.store.get_project(project_id)
        return project is not None and project.lead_id is not None and project.lead_id == user_id

    # -- capability checks --------------------------------------------------

    async def check_permission(
        self, user_id: uuid.UUID, org_id: uuid.UUID, capability: Capability | str
    ) -> Decision:
        cap = _coerce_capability(capability)

        if await self.is_owner(user_id, org_id):
            return Decision.allow()

        membership = await self.store.get_org_membership(user_id, org_id)
        if membership is None:
            return self._deny(
                ErrorKind.ACCESS_DENIED,
                "You are not a member of this organization",
                user_id=user_id, org_id=org_id, capability=cap.value,
            )

        if cap in self.grants_for(membership.role):
            return Decision.allow()

        return self._deny(
            ErrorKind.ACCESS_DENIED,
            "You don't have permission to perform this action",
            user_id=user_id, org_id=org_id, capability=cap.value, role=membership.role,
        )

    async def require_permission(
        self, user_id: uuid.UUID, org_id: uuid.UUID, capability: Capability | str
    ) -> None:
        (await self.check_permission(user_id, org_id, capability)).raise_for_denial()

    async def check_any_permission(
        self, user_id: uuid.UUID, org_id: uuid.UUID, capabilities: Iterable[Capability | str]
    ) -> Decision:
        decision = Decision.deny(ErrorKind.ACCESS_DENIED, "You don't have permission to perform this action")
        for capability in capabilities:
            decision = await self.check_permission(user_id, org_id, capability)
            if decision:
                return decision
        return decision

    async def check_membership(self, user_id: uuid.UUID, org_id: uuid.UUID) -> Decision:
        if await self.store.get_org_membership(user_id, org_id) is not None:
            return Decision.allow()
        if await self.is_owner(user_id, org_id):
            return Decision.allow()
        return self._deny(
            ErrorKind.ACCESS_DENIED,
            "You are not a member of this organization",
            user_id=user_id, org_id=org_id,
        )

    async def require_membership(self, user_id: uuid.UUID, org_id: uuid.UUID) -> None:
        (await self.check_membership(user_id, org_id)).raise_for_denial()

    # -- membership mutation rules -----------------------------------------

    async def check_role_change(
        self, caller_id: uuid.UUID, org_id: uuid.UUID, target: OrganizationMember
    ) -> Decision:
        decision = await self.check_permission(caller_id, org_id, Capability.CHANGE_ROLES)
        if not decision:
            return decision
        if await self.is_owner(target.user_id, org_id):
            return self._deny(
                ErrorKind.INVALID_OPERATION,
                "Cannot change the role of the organization owner",
                user_id=caller_id, org_id=org_id, target_user_id=target.user_id,
            )
        return Decision.allow()

    async def check_member_removal(
        self, caller_id: uuid.UUID, org_id: uuid.UUID, target: OrganizationMember
    ) -> Decision:
        if target.user_id != caller_id:
            decision = await self.check_permission(caller_id, org_id, Capability.REMOVE_MEMBERS)
            if not decision:
                return decision
        if await self.is_owner(target.user_id, org_id):
            return self._deny(
                ErrorKind.INVALID_OPERATION,
                "Cannot remove the organization owner",
                user_id=caller_id, org_id=org_id, target_user_id=target.user_id,
            )
        return Decision.allow()

    async def check_project_member_removal(
        self,
        caller_id: uuid.UUID,
        org_id: uuid.UUID,
        project: Project,
        target_user_id: uuid.UUID,
    ) -> Decision:
        decision = await self.check_membership(caller_id, org_id)
        if not decision:
            return decision
        if not await self.is_project_lead(caller_id, project.id):
            return self._deny(
                ErrorKind.ACCESS_DENIED,
                "Only the project lead can remove project members",
                user_id=caller_id, org_id=org_id, project_id=project.id,
            )
        if project.lead_id == target_user_id:
            return self._deny(
                ErrorKind.INVALID_OPERATION,
                "Cannot remove the project lead. Assign a new lead first.",
                user_id=caller_id, org_id=org_id, project_id=project.id,
            )
        return Decision.allow()

    # -----------------------------------------------------------------------

    @staticmethod
    def _deny(kind: ErrorKind, reason: str, **context) -> Decision:
        log.debug(
            "permission.denied",
            kind=kind.value,
            reason=reason,
            **{key: str(value) for key, value in context.items()},
        )
        return Decision.deny(kind, reason)
