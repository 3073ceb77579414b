"""
Tests for Project endpoints.

Covers:
- Key derivation and per-org key uniqueness
- Lead validation and project member bootstrap
- Cached project detail (membership first, invalidated on write)
- Update/delete permission rules and delete refusal
"""

from __future__ import annotations

import uuid

import pytest
from sqlmodel import select

from app.models.project import Project
from app.models.project_member import ProjectMember
from app.models.ticket import Ticket
from conftest import add_member, auth_headers, make_org, make_project, make_user
from issuetrack_shared.schemas.projects import derive_project_key


def projects_url(org_id, project_id=None):
    base = f"/api/v1/organizations/{org_id}/projects"
    return f"{base}/{project_id}" if project_id else base


@pytest.fixture
async def org_setup(db):
    owner = await make_user(db, "Owner")
    member = await make_user(db, "Member")
    org = await make_org(db, owner, prefix="ACME")
    await add_member(db, org, member)
    return {"org": org, "owner": owner, "member": member}


class TestDeriveProjectKey:
    def test_uppercases_alphanumerics(self):
        assert derive_project_key("Web App 2") == "WEBAPP2"

    def test_truncates(self):
        assert derive_project_key("Infrastructure Platform") == "INFRASTRUC"

    def test_drops_non_ascii(self):
        assert derive_project_key("Café!") == "CAF"

    def test_empty_when_nothing_usable(self):
        assert derive_project_key("!!") == ""


class TestCreateProject:
    @pytest.mark.asyncio
    async def test_owner_creates_with_derived_key(self, client, org_setup, session_factory):
        s = org_setup
        resp = await client.post(
            projects_url(s["org"].id), json={"name": "Mobile App"}, headers=auth_headers(s["owner"])
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["key"] == "MOBILEAPP"
        assert data["lead_id"] == str(s["owner"].id)
        assert data["member_count"] == 1

        async with session_factory() as session:
            result = await session.execute(
                select(ProjectMember).where(ProjectMember.project_id == uuid.UUID(data["id"]))
            )
            row = result.scalar_one()
            assert row.role == "LEAD"

    @pytest.mark.asyncio
    async def test_fallback_key_when_name_has_no_alphanumerics(self, client, org_setup):
        s = org_setup
        resp = await client.post(
            projects_url(s["org"].id), json={"name": "???"}, headers=auth_headers(s["owner"])
        )
        assert resp.status_code == 201
        assert resp.json()["key"] == "ACMEP1"

    @pytest.mark.asyncio
    async def test_other_lead_adds_creator_as_member(self, client, org_setup):
        s = org_setup
        resp = await client.post(
            projects_url(s["org"].id),
            json={"name": "Backend", "lead_id": str(s["member"].id)},
            headers=auth_headers(s["owner"]),
        )
        assert resp.status_code == 201
        assert resp.json()["lead_id"] == str(s["member"].id)
        assert resp.json()["member_count"] == 2

    @pytest.mark.asyncio
    async def test_lead_must_be_org_member(self, client, org_setup, db):
        s = org_setup
        outsider = await make_user(db, "Outsider")
        resp = await client.post(
            projects_url(s["org"].id),
            json={"name": "Backend", "lead_id": str(outsider.id)},
            headers=auth_headers(s["owner"]),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["details"][0]["field"] == "lead_id"

    @pytest.mark.asyncio
    async def test_duplicate_key_conflicts(self, client, org_setup, db):
        s = org_setup
        await make_project(db, s["org"], s["owner"], key="WEB")
        resp = await client.post(
            projects_url(s["org"].id),
            json={"name": "Web", "key": "WEB"},
            headers=auth_headers(s["owner"]),
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_same_key_in_other_org_is_fine(self, client, org_setup, db):
        s = org_setup
        other_owner = await make_user(db, "Elsewhere")
        other_org = await make_org(db, other_owner, prefix="ELSE")
        await make_project(db, other_org, other_owner, key="WEB")
        resp = await client.post(
            projects_url(s["org"].id),
            json={"name": "Web", "key": "WEB"},
            headers=auth_headers(s["owner"]),
        )
        assert resp.status_code == 201

    @pytest.mark.asyncio
    async def test_member_cannot_create(self, client, org_setup):
        s = org_setup
        resp = await client.post(
            projects_url(s["org"].id), json={"name": "Sneaky"}, headers=auth_headers(s["member"])
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_explicit_key(self, client, org_setup):
        s = org_setup
        resp = await client.post(
            projects_url(s["org"].id),
            json={"name": "Web", "key": "web"},
            headers=auth_headers(s["owner"]),
        )
        assert resp.status_code == 400


class TestListProjects:
    @pytest.mark.asyncio
    async def test_hides_inactive_by_default(self, client, org_setup, db):
        s = org_setup
        await make_project(db, s["org"], s["owner"], key="WEB")
        archived = await make_project(db, s["org"], s["owner"], key="OLD", name="Old")
        archived.is_active = False
        db.add(archived)
        await db.commit()

        resp = await client.get(projects_url(s["org"].id), headers=auth_headers(s["member"]))
        assert [p["key"] for p in resp.json()] == ["WEB"]

        resp = await client.get(
            projects_url(s["org"].id),
            params={"include_inactive": "true"},
            headers=auth_headers(s["member"]),
        )
        assert [p["key"] for p in resp.json()] == ["WEB", "OLD"]

    @pytest.mark.asyncio
    async def test_outsider_forbidden(self, client, org_setup, db):
        s = org_setup
        outsider = await make_user(db, "Outsider")
        resp = await client.get(projects_url(s["org"].id), headers=auth_headers(outsider))
        assert resp.status_code == 403


class TestProjectDetail:
    @pytest.mark.asyncio
    async def test_includes_caller_role(self, client, org_setup, db):
        s = org_setup
        project = await make_project(db, s["org"], s["member"])

        resp = await client.get(
            projects_url(s["org"].id, project.id), headers=auth_headers(s["member"])
        )
        assert resp.status_code == 200
        assert resp.json()["user_role"] == "LEAD"
        assert resp.json()["is_user_member"] is True

        resp = await client.get(
            projects_url(s["org"].id, project.id), headers=auth_headers(s["owner"])
        )
        assert resp.json()["user_role"] is None
        assert resp.json()["is_user_member"] is False

    @pytest.mark.asyncio
    async def test_outsider_gets_403_even_for_missing_project(self, client, org_setup, db):
        s = org_setup
        outsider = await make_user(db, "Outsider")
        resp = await client.get(
            projects_url(s["org"].id, uuid.uuid4()), headers=auth_headers(outsider)
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_member_gets_404_for_missing_project(self, client, org_setup, test_app):
        s = org_setup
        resp = await client.get(
            projects_url(s["org"].id, uuid.uuid4()), headers=auth_headers(s["member"])
        )
        assert resp.status_code == 404
        assert len(test_app.state.project_cache) == 0

    @pytest.mark.asyncio
    async def test_detail_is_cached_until_written(self, client, org_setup, db):
        s = org_setup
        project = await make_project(db, s["org"], s["owner"])
        url = projects_url(s["org"].id, project.id)

        first = await client.get(url, headers=auth_headers(s["member"]))
        assert first.json()["name"] == "Website"

        # A write behind the API's back is not seen until the entry is dropped
        project.name = "Renamed Elsewhere"
        db.add(project)
        await db.commit()
        cached = await client.get(url, headers=auth_headers(s["member"]))
        assert cached.json()["name"] == "Website"

        resp = await client.put(url, json={"name": "Portal"}, headers=auth_headers(s["owner"]))
        assert resp.status_code == 200
        fresh = await client.get(url, headers=auth_headers(s["member"]))
        assert fresh.json()["name"] == "Portal"

    @pytest.mark.asyncio
    async def test_cached_detail_still_checks_membership(self, client, org_setup, db, test_app):
        s = org_setup
        project = await make_project(db, s["org"], s["owner"])
        url = projects_url(s["org"].id, project.id)
        await client.get(url, headers=auth_headers(s["member"]))
        assert len(test_app.state.project_cache) == 1

        outsider = await make_user(db, "Outsider")
        resp = await client.get(url, headers=auth_headers(outsider))
        assert resp.status_code == 403


class TestUpdateProject:
    @pytest.mark.asyncio
    async def test_lead_without_manage_capability_may_update(self, client, org_setup, db):
        s = org_setup
        project = await make_project(db, s["org"], s["member"])
        resp = await client.put(
            projects_url(s["org"].id, project.id),
            json={"description": "Lead edit"},
            headers=auth_headers(s["member"]),
        )
        assert resp.status_code == 200
        assert resp.json()["description"] == "Lead edit"

    @pytest.mark.asyncio
    async def test_plain_member_cannot_update(self, client, org_setup, db):
        s = org_setup
        project = await make_project(db, s["org"], s["owner"])
        resp = await client.put(
            projects_url(s["org"].id, project.id),
            json={"name": "Nope"},
            headers=auth_headers(s["member"]),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_changing_lead_moves_lead_role(self, client, org_setup, db, session_factory):
        s = org_setup
        project = await make_project(db, s["org"], s["owner"])
        resp = await client.put(
            projects_url(s["org"].id, project.id),
            json={"lead_id": str(s["member"].id)},
            headers=auth_headers(s["owner"]),
        )
        assert resp.status_code == 200

        async with session_factory() as session:
            result = await session.execute(
                select(ProjectMember).where(ProjectMember.project_id == project.id)
            )
            roles = {m.user_id: m.role for m in result.scalars().all()}
        assert roles == {s["owner"].id: "MEMBER", s["member"].id: "LEAD"}

    @pytest.mark.asyncio
    async def test_new_lead_must_be_org_member(self, client, org_setup, db):
        s = org_setup
        project = await make_project(db, s["org"], s["owner"])
        outsider = await make_user(db, "Outsider")
        resp = await client.put(
            projects_url(s["org"].id, project.id),
            json={"lead_id": str(outsider.id)},
            headers=auth_headers(s["owner"]),
        )
        assert resp.status_code == 400


class TestDeleteProject:
    @pytest.mark.asyncio
    async def test_delete_empty_project(self, client, org_setup, db, session_factory):
        s = org_setup
        project = await make_project(db, s["org"], s["owner"])
        resp = await client.delete(
            projects_url(s["org"].id, project.id), headers=auth_headers(s["owner"])
        )
        assert resp.status_code == 200
        async with session_factory() as session:
            assert await session.get(Project, project.id) is None

    @pytest.mark.asyncio
    async def test_refuses_project_with_tickets(self, client, org_setup, db):
        s = org_setup
        project = await make_project(db, s["org"], s["owner"])
        db.add(
            Ticket(
                organization_id=s["org"].id,
                project_id=project.id,
                ticket_number=1,
                ticket_key="ACME-1",
                title="Keep me",
                type="TASK",
                reporter_id=s["owner"].id,
            )
        )
        await db.commit()

        resp = await client.delete(
            projects_url(s["org"].id, project.id), headers=auth_headers(s["owner"])
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_OPERATION"

    @pytest.mark.asyncio
    async def test_member_cannot_delete(self, client, org_setup, db):
        s = org_setup
        project = await make_project(db, s["org"], s["member"])
        resp = await client.delete(
            projects_url(s["org"].id, project.id), headers=auth_headers(s["member"])
        )
        assert resp.status_code == 403
