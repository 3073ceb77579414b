"""
Script to create an initial user with a password, owning a default organization,
for local testing.

Usage:
    python -m app.scripts.create_local_admin --email admin@example.com --password changeme123
"""

import argparse
import asyncio

from sqlmodel import select

from app.core.database import get_session_context, init_db
from app.models.organization import Organization
from app.services import organizations as org_service
from app.services import users as user_service
from issuetrack_shared.schemas.organizations import OrgCreateRequest
from issuetrack_shared.schemas.users import RegisterRequest

DEFAULT_ORG = OrgCreateRequest(name="Default Organization", ticket_prefix="DEF")


async def create_user(email: str, password: str, name: str):
    await init_db()

    async with get_session_context() as session:
        user = await user_service.get_user_by_email(session, email)
        if not user:
            user = await user_service.register_user(
                session, RegisterRequest(email=email, password=password, name=name)
            )
            print(f"Created user: {email}")
        else:
            print(f"User {email} already exists.")

        result = await session.execute(
            select(Organization).where(Organization.ticket_prefix == DEFAULT_ORG.ticket_prefix)
        )
        org = result.scalar_one_or_none()
        if not org:
            org = await org_service.create_org(session, DEFAULT_ORG, user.id)
            print(f"Created '{org.name}' owned by {email}.")
        else:
            print(f"Organization '{org.name}' already exists.")

    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--name", default="Local Admin", help="Display name")

    args = parser.parse_args()

    asyncio.run(create_user(args.email, args.password, args.name))
