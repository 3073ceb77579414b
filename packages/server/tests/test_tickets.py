"""
Tests for tickets, sprints, comments and backlog reordering.

Covers:
- Sequential ticket keys per organization
- Reference validation (cross-org project, assignee membership, self-parent)
- List filters, search, priority sort, pagination
- Activity entries for create/update/reorder
- Sprint creation and date validation
- Comment threading and author-only edits
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import select

from app.models.activity import Activity
from app.models.comment import Comment
from app.models.ticket import Ticket
from conftest import add_member, auth_headers, make_org, make_project, make_user


def tickets_url(org_id, ticket_id=None):
    base = f"/api/v1/organizations/{org_id}/tickets"
    return f"{base}/{ticket_id}" if ticket_id else base


@pytest.fixture
async def org_setup(db):
    owner = await make_user(db, "Owner")
    member = await make_user(db, "Member")
    org = await make_org(db, owner, prefix="ACME")
    await add_member(db, org, member)
    project = await make_project(db, org, owner)
    return {"org": org, "owner": owner, "member": member, "project": project}


async def create(client, s, user=None, **fields):
    body = {"title": "Something", "type": "TASK", "project_id": str(s["project"].id)}
    body.update(fields)
    resp = await client.post(
        tickets_url(s["org"].id), json=body, headers=auth_headers(user or s["member"])
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreateTicket:
    @pytest.mark.asyncio
    async def test_sequential_keys(self, client, org_setup):
        first = await create(client, org_setup)
        second = await create(client, org_setup, title="Another")
        assert first["ticket_key"] == "ACME-1"
        assert second["ticket_key"] == "ACME-2"
        assert second["ticket_number"] == 2
        assert first["status"] == "TODO"
        assert first["priority"] == "MEDIUM"

    @pytest.mark.asyncio
    async def test_numbering_is_per_org(self, client, org_setup, db):
        await create(client, org_setup)
        owner = await make_user(db, "Elsewhere")
        other = await make_org(db, owner, prefix="ELSE")
        resp = await client.post(
            tickets_url(other.id), json={"title": "Hi", "type": "BUG"}, headers=auth_headers(owner)
        )
        assert resp.json()["ticket_key"] == "ELSE-1"

    @pytest.mark.asyncio
    async def test_records_activity(self, client, org_setup, session_factory):
        ticket = await create(client, org_setup)
        async with session_factory() as session:
            result = await session.execute(
                select(Activity).where(Activity.ticket_id == uuid.UUID(ticket["id"]))
            )
            activity = result.scalar_one()
        assert activity.type == "TICKET_CREATED"
        assert activity.user_id == org_setup["member"].id

    @pytest.mark.asyncio
    async def test_outsider_forbidden(self, client, org_setup, db):
        outsider = await make_user(db, "Outsider")
        resp = await client.post(
            tickets_url(org_setup["org"].id),
            json={"title": "Hi", "type": "BUG"},
            headers=auth_headers(outsider),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_project_from_other_org_is_404(self, client, org_setup, db):
        owner = await make_user(db, "Elsewhere")
        other = await make_org(db, owner, prefix="ELSE")
        foreign = await make_project(db, other, owner, key="FOR")
        resp = await client.post(
            tickets_url(org_setup["org"].id),
            json={"title": "Hi", "type": "BUG", "project_id": str(foreign.id)},
            headers=auth_headers(org_setup["member"]),
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_assignee_must_be_member(self, client, org_setup, db):
        outsider = await make_user(db, "Outsider")
        resp = await client.post(
            tickets_url(org_setup["org"].id),
            json={"title": "Hi", "type": "BUG", "assignee_id": str(outsider.id)},
            headers=auth_headers(org_setup["member"]),
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_type(self, client, org_setup):
        resp = await client.post(
            tickets_url(org_setup["org"].id),
            json={"title": "Hi", "type": "CHORE"},
            headers=auth_headers(org_setup["member"]),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["details"][0]["field"] == "type"


class TestListTickets:
    @pytest.mark.asyncio
    async def test_filters_and_search(self, client, org_setup):
        s = org_setup
        await create(client, s, title="Login page broken", type="BUG", priority="HIGH")
        await create(client, s, title="Write docs", priority="LOW")
        await create(client, s, title="Fix login redirect", type="BUG", priority="HIGHEST")

        resp = await client.get(
            tickets_url(s["org"].id), params={"type": "BUG"}, headers=auth_headers(s["member"])
        )
        assert resp.json()["pagination"]["total"] == 2

        resp = await client.get(
            tickets_url(s["org"].id), params={"search": "LOGIN"}, headers=auth_headers(s["member"])
        )
        assert {t["title"] for t in resp.json()["tickets"]} == {
            "Login page broken",
            "Fix login redirect",
        }

        resp = await client.get(
            tickets_url(s["org"].id), params={"search": "ACME-2"}, headers=auth_headers(s["member"])
        )
        assert [t["title"] for t in resp.json()["tickets"]] == ["Write docs"]

    @pytest.mark.asyncio
    async def test_priority_sort_most_urgent_first(self, client, org_setup):
        s = org_setup
        for priority in ("LOW", "HIGHEST", "MEDIUM"):
            await create(client, s, title=priority, priority=priority)

        resp = await client.get(
            tickets_url(s["org"].id),
            params={"sort_by": "priority", "sort_order": "desc"},
            headers=auth_headers(s["member"]),
        )
        assert [t["priority"] for t in resp.json()["tickets"]] == ["HIGHEST", "MEDIUM", "LOW"]

    @pytest.mark.asyncio
    async def test_pagination(self, client, org_setup):
        s = org_setup
        for i in range(5):
            await create(client, s, title=f"T{i}")

        resp = await client.get(
            tickets_url(s["org"].id),
            params={"limit": 2, "page": 3, "sort_by": "ticket_number", "sort_order": "asc"},
            headers=auth_headers(s["member"]),
        )
        data = resp.json()
        assert data["pagination"] == {"page": 3, "limit": 2, "total": 5, "pages": 3}
        assert [t["ticket_key"] for t in data["tickets"]] == ["ACME-5"]

    @pytest.mark.asyncio
    async def test_limit_bounds(self, client, org_setup):
        resp = await client.get(
            tickets_url(org_setup["org"].id),
            params={"limit": 500},
            headers=auth_headers(org_setup["member"]),
        )
        assert resp.status_code == 400


class TestUpdateAndDeleteTicket:
    @pytest.mark.asyncio
    async def test_update_records_changed_fields(self, client, org_setup, session_factory):
        s = org_setup
        ticket = await create(client, s)
        resp = await client.patch(
            tickets_url(s["org"].id, ticket["id"]),
            json={"status": "IN_PROGRESS", "title": "Something", "assignee_id": str(s["owner"].id)},
            headers=auth_headers(s["member"]),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "IN_PROGRESS"

        async with session_factory() as session:
            result = await session.execute(
                select(Activity).where(
                    Activity.ticket_id == uuid.UUID(ticket["id"]),
                    Activity.type == "TICKET_UPDATED",
                )
            )
            activity = result.scalar_one()
        assert sorted(activity.payload["fields"]) == ["assignee_id", "status"]

    @pytest.mark.asyncio
    async def test_self_parent_rejected(self, client, org_setup):
        s = org_setup
        ticket = await create(client, s)
        resp = await client.patch(
            tickets_url(s["org"].id, ticket["id"]),
            json={"parent_id": ticket["id"]},
            headers=auth_headers(s["member"]),
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_ticket_of_other_org_is_404(self, client, org_setup, db):
        s = org_setup
        ticket = await create(client, s)
        owner = await make_user(db, "Elsewhere")
        other = await make_org(db, owner, prefix="ELSE")
        resp = await client.get(tickets_url(other.id, ticket["id"]), headers=auth_headers(owner))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_outsider_gets_403_for_any_ticket_id(self, client, org_setup, db):
        s = org_setup
        ticket = await create(client, s)
        outsider = await make_user(db, "Outsider")
        for ticket_id in (ticket["id"], uuid.uuid4()):
            resp = await client.get(
                tickets_url(s["org"].id, ticket_id), headers=auth_headers(outsider)
            )
            assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_detaches_subtickets(self, client, org_setup, session_factory):
        s = org_setup
        parent = await create(client, s, title="Epic", type="EPIC")
        child = await create(client, s, title="Child", parent_id=parent["id"])

        resp = await client.delete(
            tickets_url(s["org"].id, parent["id"]), headers=auth_headers(s["member"])
        )
        assert resp.status_code == 200

        async with session_factory() as session:
            assert await session.get(Ticket, uuid.UUID(parent["id"])) is None
            remaining = await session.get(Ticket, uuid.UUID(child["id"]))
            assert remaining.parent_id is None


class TestReorder:
    def url(self, s, project=None):
        project = project or s["project"]
        return f"/api/v1/organizations/{s['org'].id}/projects/{project.id}/tickets/reorder"

    @pytest.mark.asyncio
    async def test_reorder_sets_updated_at_order(self, client, org_setup, session_factory):
        s = org_setup
        ids = [(await create(client, s, title=f"T{i}"))["id"] for i in range(3)]
        wanted = [ids[2], ids[0], ids[1]]

        resp = await client.post(
            self.url(s), json={"ticket_ids": wanted}, headers=auth_headers(s["member"])
        )
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "count": 3}

        listing = await client.get(
            tickets_url(s["org"].id),
            params={"project_id": str(s["project"].id), "sort_by": "updated_at", "sort_order": "asc"},
            headers=auth_headers(s["member"]),
        )
        assert [t["id"] for t in listing.json()["tickets"]] == wanted

        async with session_factory() as session:
            result = await session.execute(
                select(Activity).where(Activity.type == "TICKETS_REORDERED")
            )
            activity = result.scalar_one()
        assert activity.payload["ticket_ids"] == wanted

    @pytest.mark.asyncio
    async def test_duplicates_rejected(self, client, org_setup):
        s = org_setup
        ticket = await create(client, s)
        resp = await client.post(
            self.url(s),
            json={"ticket_ids": [ticket["id"], ticket["id"]]},
            headers=auth_headers(s["member"]),
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_ticket_outside_project_is_404(self, client, org_setup, db):
        s = org_setup
        other = await make_project(db, s["org"], s["owner"], key="OPS", name="Ops")
        ticket = await create(client, s, project_id=str(other.id))
        resp = await client.post(
            self.url(s), json={"ticket_ids": [ticket["id"]]}, headers=auth_headers(s["member"])
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_list_rejected(self, client, org_setup):
        s = org_setup
        resp = await client.post(
            self.url(s), json={"ticket_ids": []}, headers=auth_headers(s["member"])
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_outsider_forbidden(self, client, org_setup, db):
        s = org_setup
        ticket = await create(client, s)
        outsider = await make_user(db, "Outsider")
        resp = await client.post(
            self.url(s), json={"ticket_ids": [ticket["id"]]}, headers=auth_headers(outsider)
        )
        assert resp.status_code == 403


class TestSprints:
    def url(self, s):
        return f"/api/v1/organizations/{s['org'].id}/projects/{s['project'].id}/sprints"

    @pytest.mark.asyncio
    async def test_create_and_list(self, client, org_setup):
        s = org_setup
        start = datetime(2026, 1, 5, tzinfo=timezone.utc)
        resp = await client.post(
            self.url(s),
            json={
                "name": "Sprint 1",
                "start_date": start.isoformat(),
                "end_date": (start + timedelta(days=14)).isoformat(),
            },
            headers=auth_headers(s["member"]),
        )
        assert resp.status_code == 201
        sprint = resp.json()
        assert sprint["status"] == "PLANNED"
        assert sprint["ticket_count"] == 0

        await create(client, s, sprint_id=sprint["id"])
        listing = await client.get(self.url(s), headers=auth_headers(s["member"]))
        assert [sp["ticket_count"] for sp in listing.json()] == [1]

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, client, org_setup):
        s = org_setup
        resp = await client.post(
            self.url(s),
            json={
                "name": "Backwards",
                "start_date": "2026-02-01T00:00:00Z",
                "end_date": "2026-01-01T00:00:00Z",
            },
            headers=auth_headers(s["member"]),
        )
        assert resp.status_code == 400


class TestComments:
    def url(self, s, ticket_id, comment_id=None):
        base = f"{tickets_url(s['org'].id, ticket_id)}/comments"
        return f"{base}/{comment_id}" if comment_id else base

    @pytest.mark.asyncio
    async def test_thread_and_counts(self, client, org_setup):
        s = org_setup
        ticket = await create(client, s)
        root = await client.post(
            self.url(s, ticket["id"]), json={"content": "First"}, headers=auth_headers(s["member"])
        )
        assert root.status_code == 201
        assert root.json()["author"]["id"] == str(s["member"].id)

        reply = await client.post(
            self.url(s, ticket["id"]),
            json={"content": "Reply", "parent_id": root.json()["id"]},
            headers=auth_headers(s["owner"]),
        )
        assert reply.status_code == 201
        assert reply.json()["parent_id"] == root.json()["id"]

        listing = await client.get(self.url(s, ticket["id"]), headers=auth_headers(s["member"]))
        assert [c["content"] for c in listing.json()] == ["First", "Reply"]

        detail = await client.get(tickets_url(s["org"].id, ticket["id"]), headers=auth_headers(s["member"]))
        assert detail.json()["comment_count"] == 2

    @pytest.mark.asyncio
    async def test_parent_on_other_ticket_is_404(self, client, org_setup):
        s = org_setup
        first = await create(client, s)
        second = await create(client, s)
        comment = await client.post(
            self.url(s, first["id"]), json={"content": "Here"}, headers=auth_headers(s["member"])
        )
        resp = await client.post(
            self.url(s, second["id"]),
            json={"content": "There", "parent_id": comment.json()["id"]},
            headers=auth_headers(s["member"]),
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_only_author_edits(self, client, org_setup):
        s = org_setup
        ticket = await create(client, s)
        comment = (
            await client.post(
                self.url(s, ticket["id"]), json={"content": "Mine"}, headers=auth_headers(s["member"])
            )
        ).json()

        resp = await client.patch(
            self.url(s, ticket["id"], comment["id"]),
            json={"content": "Owner edit"},
            headers=auth_headers(s["owner"]),
        )
        assert resp.status_code == 403

        resp = await client.patch(
            self.url(s, ticket["id"], comment["id"]),
            json={"content": "Edited"},
            headers=auth_headers(s["member"]),
        )
        assert resp.status_code == 200
        assert resp.json()["content"] == "Edited"

    @pytest.mark.asyncio
    async def test_delete_keeps_replies(self, client, org_setup, session_factory):
        s = org_setup
        ticket = await create(client, s)
        root = (
            await client.post(
                self.url(s, ticket["id"]), json={"content": "Root"}, headers=auth_headers(s["member"])
            )
        ).json()
        reply = (
            await client.post(
                self.url(s, ticket["id"]),
                json={"content": "Reply", "parent_id": root["id"]},
                headers=auth_headers(s["owner"]),
            )
        ).json()

        resp = await client.delete(
            self.url(s, ticket["id"], root["id"]), headers=auth_headers(s["member"])
        )
        assert resp.status_code == 200

        async with session_factory() as session:
            survivor = await session.get(Comment, uuid.UUID(reply["id"]))
            assert survivor.parent_id is None
