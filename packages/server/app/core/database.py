"""
Async engine and unit-of-work sessions for the tracker's tables.

Every request handler gets one ``AsyncSession`` through ``get_session``; the
services flush as they go and the whole request commits once at the end, so a
typed error raised half way through (a 409 on a duplicate key, a 400 on a
lead that is not an org member) leaves nothing behind.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()


def _engine_options(database_url: str) -> dict:
    options: dict = {"echo": settings.debug}
    if not make_url(database_url).get_backend_name().startswith("sqlite"):
        # Postgres connections can go stale behind a proxy
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Create the schema directly from model metadata.

    Used by tests and the dev scripts; deployed databases go through alembic.
    """
    import app.models  # noqa: F401  (populate metadata)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    log.info("database.schema_created", tables=len(SQLModel.metadata.tables))


async def dispose_engine() -> None:
    await engine.dispose()


@asynccontextmanager
async def unit_of_work() -> AsyncIterator[AsyncSession]:
    """Commit on clean exit, roll back and re-raise on any error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one unit of work per request."""
    async with unit_of_work() as session:
        yield session


# Scripts run outside a request
get_session_context = unit_of_work
