"""Tests for the request/script unit of work."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core import database


@pytest.fixture
def fake_session(monkeypatch):
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()

    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    monkeypatch.setattr(database, "async_session_factory", factory)
    return session


@pytest.mark.asyncio
async def test_commits_on_clean_exit(fake_session):
    async with database.unit_of_work() as session:
        assert session is fake_session
    fake_session.commit.assert_awaited_once()
    fake_session.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_rolls_back_and_reraises(fake_session):
    with pytest.raises(LookupError):
        async with database.get_session_context():
            raise LookupError("boom")
    fake_session.rollback.assert_awaited_once()
    fake_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_session_dependency_uses_unit_of_work(fake_session):
    gen = database.get_session()
    assert await gen.__anext__() is fake_session
    with pytest.raises(StopAsyncIteration):
        await gen.__anext__()
    fake_session.commit.assert_awaited_once()
