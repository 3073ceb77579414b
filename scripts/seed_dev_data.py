#!/usr/bin/env python3
"""Seed a development database with an organization, users, projects, a sprint and tickets.

Usage:
    python scripts/seed_dev_data.py

Reads IT_DATABASE_URL like the server does. Running it twice is a no-op.
"""

import asyncio
from datetime import timedelta

from sqlmodel import select

from app.core.database import dispose_engine, get_session_context, init_db
from app.models.base import utcnow
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember
from app.services import organizations as org_service
from app.services import project_members as project_member_service
from app.services import projects as project_service
from app.services import sprints as sprint_service
from app.services import tickets as ticket_service
from app.services import users as user_service
from issuetrack_shared.schemas.common import MemberRole, Priority, TicketType
from issuetrack_shared.schemas.organizations import OrgCreateRequest
from issuetrack_shared.schemas.projects import ProjectCreate, ProjectMemberAdd
from issuetrack_shared.schemas.tickets import SprintCreate, TicketCreate
from issuetrack_shared.schemas.users import RegisterRequest

PASSWORD = "dev-password"

USERS = [
    ("alice@acme.dev", "Alice Admin"),
    ("bob@acme.dev", "Bob Builder"),
    ("carol@acme.dev", "Carol Coder"),
]

TICKETS = [
    ("Set up CI pipeline", TicketType.TASK, Priority.HIGH),
    ("Login redirect loops on Safari", TicketType.BUG, Priority.HIGHEST),
    ("Sprint board drag and drop", TicketType.STORY, Priority.MEDIUM),
    ("Write contribution guide", TicketType.TASK, Priority.LOW),
    ("Search across ticket titles", TicketType.STORY, Priority.MEDIUM),
    ("Billing", TicketType.EPIC, Priority.HIGH),
]


async def seed():
    await init_db()

    async with get_session_context() as session:
        existing = await session.execute(select(Organization).where(Organization.slug == "acme-robotics"))
        if existing.scalar_one_or_none():
            print("Already seeded.")
            return

        users = [
            await user_service.register_user(
                session, RegisterRequest(email=email, password=PASSWORD, name=name)
            )
            for email, name in USERS
        ]
        alice, bob, carol = users

        org = await org_service.create_org(
            session, OrgCreateRequest(name="Acme Robotics", ticket_prefix="ACME"), alice.id
        )
        session.add(OrganizationMember(user_id=bob.id, organization_id=org.id, role=MemberRole.ADMIN.value))
        session.add(OrganizationMember(user_id=carol.id, organization_id=org.id, role=MemberRole.MEMBER.value))
        await session.flush()

        web = await project_service.create_project(
            session, org, ProjectCreate(name="Web App", key="WEB", lead_id=bob.id), alice.id
        )
        await project_service.create_project(session, org, ProjectCreate(name="Firmware"), alice.id)
        await project_member_service.add_project_member(session, org, web, ProjectMemberAdd(user_id=carol.id))

        start = utcnow()
        sprint = await sprint_service.create_sprint(
            session,
            web,
            SprintCreate(name="Sprint 1", start_date=start, end_date=start + timedelta(days=14)),
        )

        for i, (title, ticket_type, priority) in enumerate(TICKETS):
            await ticket_service.create_ticket(
                session,
                org,
                TicketCreate(
                    title=title,
                    type=ticket_type,
                    priority=priority,
                    project_id=web.id,
                    sprint_id=sprint.id if i < 3 else None,
                    assignee_id=users[i % len(users)].id,
                ),
                alice.id,
            )

    await dispose_engine()
    print(f"Seeded '{org.name}' with {len(USERS)} users, 2 projects, 1 sprint, {len(TICKETS)} tickets.")
    print(f"Log in as any of {', '.join(e for e, _ in USERS)} with password '{PASSWORD}'.")


if __name__ == "__main__":
    asyncio.run(seed())
