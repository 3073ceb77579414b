"""
API v1 Router

All tenant endpoints live under /organizations/{org_id}.
"""

from fastapi import APIRouter

from . import comments, members, organizations, project_members, projects, sprints, tickets

router = APIRouter()

ORG = "/organizations/{org_id}"
PROJECT = ORG + "/projects/{project_id}"

router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(members.router, prefix=f"{ORG}/members", tags=["Members"])
router.include_router(projects.router, prefix=f"{ORG}/projects", tags=["Projects"])
router.include_router(project_members.router, prefix=f"{PROJECT}/members", tags=["Project Members"])
router.include_router(sprints.router, prefix=f"{PROJECT}/sprints", tags=["Sprints"])
router.include_router(tickets.router, prefix=f"{ORG}/tickets", tags=["Tickets"])
router.include_router(comments.router, prefix=f"{ORG}/tickets/{{ticket_id}}/comments", tags=["Comments"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/organizations",
            f"{ORG}/members",
            f"{ORG}/projects",
            f"{PROJECT}/members",
            f"{PROJECT}/sprints",
            f"{PROJECT}/tickets/reorder",
            f"{ORG}/tickets",
            f"{ORG}/tickets/{{ticket_id}}/comments",
        ],
    }
