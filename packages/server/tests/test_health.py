"""
Health check endpoint tests.
"""

import pytest
import redis.asyncio as redis
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint should return status ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_check(client: AsyncClient):
    """Ready endpoint reports Redis reachability."""
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "redis": True}


@pytest.mark.asyncio
async def test_ready_check_degraded(client: AsyncClient, redis_mock):
    redis_mock.ping.side_effect = redis.ConnectionError("down")
    response = await client.get("/ready")
    assert response.json() == {"status": "degraded", "redis": False}


@pytest.mark.asyncio
async def test_api_root(client: AsyncClient):
    """API v1 root should return version and endpoint list."""
    response = await client.get("/api/v1/")
    assert response.status_code == 200
    data = response.json()
    assert data["api"] == "v1"
    assert "endpoints" in data


@pytest.mark.asyncio
async def test_request_id_and_security_headers(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
    assert response.headers["X-Frame-Options"] == "DENY"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client: AsyncClient):
    response = await client.get("/api/v1/nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"
