"""Initial issue tracker schema: tenants, projects, tickets, sprints, comments, activity.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)


def _id() -> sa.Column:
    return sa.Column("id", UUID, primary_key=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # -----------------------------------------------------------------------
    # 1. Identity and tenancy
    # -----------------------------------------------------------------------

    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "organizations",
        _id(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("ticket_prefix", sa.String(5), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.Text(), nullable=True),
        sa.Column("owner_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_organizations_name", "organizations", ["name"])
    op.create_index("ix_organizations_slug", "organizations", ["slug"])
    op.create_index("ix_organizations_owner_id", "organizations", ["owner_id"])

    op.create_table(
        "organization_members",
        _id(),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("organization_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="MEMBER"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "organization_id", name="uq_org_member_user_org"),
        sa.CheckConstraint("role IN ('ADMIN', 'MEMBER')", name="ck_org_member_role"),
    )
    op.create_index("ix_organization_members_user_id", "organization_members", ["user_id"])
    op.create_index(
        "ix_organization_members_organization_id", "organization_members", ["organization_id"]
    )

    op.create_table(
        "invitations",
        _id(),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("organization_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="MEMBER"),
        sa.Column("invited_by", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_invitations_email", "invitations", ["email"])
    op.create_index("ix_invitations_organization_id", "invitations", ["organization_id"])

    # -----------------------------------------------------------------------
    # 2. Projects and sprints
    # -----------------------------------------------------------------------

    op.create_table(
        "projects",
        _id(),
        sa.Column("organization_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("key", sa.String(10), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("lead_id", UUID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "key", name="uq_project_org_key"),
    )
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])

    op.create_table(
        "project_members",
        _id(),
        sa.Column("project_id", UUID, sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="MEMBER"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_member_project_user"),
        sa.CheckConstraint("role IN ('LEAD', 'MEMBER')", name="ck_project_member_role"),
    )
    op.create_index("ix_project_members_project_id", "project_members", ["project_id"])
    op.create_index("ix_project_members_user_id", "project_members", ["user_id"])

    op.create_table(
        "sprints",
        _id(),
        sa.Column("organization_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("project_id", UUID, sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("goal", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="PLANNED"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("start_date < end_date", name="ck_sprint_dates"),
    )
    op.create_index("ix_sprints_organization_id", "sprints", ["organization_id"])
    op.create_index("ix_sprints_project_id", "sprints", ["project_id"])

    # -----------------------------------------------------------------------
    # 3. Tickets, labels, comments
    # -----------------------------------------------------------------------

    op.create_table(
        "tickets",
        _id(),
        sa.Column("organization_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("project_id", UUID, sa.ForeignKey("projects.id"), nullable=True),
        sa.Column("sprint_id", UUID, sa.ForeignKey("sprints.id"), nullable=True),
        sa.Column("parent_id", UUID, sa.ForeignKey("tickets.id"), nullable=True),
        sa.Column("ticket_number", sa.Integer(), nullable=False),
        sa.Column("ticket_key", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="TODO"),
        sa.Column("priority", sa.Text(), nullable=False, server_default="MEDIUM"),
        sa.Column("area", sa.Text(), nullable=False, server_default="DEVELOPMENT"),
        sa.Column("story_points", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reporter_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assignee_id", UUID, sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "ticket_number", name="uq_ticket_org_number"),
    )
    op.create_index("ix_tickets_organization_id", "tickets", ["organization_id"])
    op.create_index("ix_tickets_project_id", "tickets", ["project_id"])
    op.create_index("ix_tickets_sprint_id", "tickets", ["sprint_id"])
    op.create_index("ix_tickets_assignee_id", "tickets", ["assignee_id"])
    op.create_index("ix_tickets_ticket_key", "tickets", ["ticket_key"])

    op.create_table(
        "labels",
        _id(),
        sa.Column("organization_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("color", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "name", name="uq_label_org_name"),
    )
    op.create_index("ix_labels_organization_id", "labels", ["organization_id"])

    op.create_table(
        "ticket_labels",
        sa.Column("ticket_id", UUID, sa.ForeignKey("tickets.id"), primary_key=True),
        sa.Column("label_id", UUID, sa.ForeignKey("labels.id"), primary_key=True),
    )

    op.create_table(
        "comments",
        _id(),
        sa.Column("ticket_id", UUID, sa.ForeignKey("tickets.id"), nullable=False),
        sa.Column("author_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("parent_id", UUID, sa.ForeignKey("comments.id"), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_comments_ticket_id", "comments", ["ticket_id"])

    # -----------------------------------------------------------------------
    # 4. Activity log
    # -----------------------------------------------------------------------

    op.create_table(
        "activities",
        _id(),
        sa.Column("organization_id", UUID, sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("ticket_id", UUID, sa.ForeignKey("tickets.id"), nullable=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_activities_organization_id", "activities", ["organization_id"])
    op.create_index("ix_activities_ticket_id", "activities", ["ticket_id"])


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Reverse dependency order; indexes go with their tables
    op.drop_table("activities")
    op.drop_table("comments")
    op.drop_table("ticket_labels")
    op.drop_table("labels")
    op.drop_table("tickets")
    op.drop_table("sprints")
    op.drop_table("project_members")
    op.drop_table("projects")
    op.drop_table("invitations")
    op.drop_table("organization_members")
    op.drop_table("organizations")
    op.drop_table("users")
