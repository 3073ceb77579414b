"""
Time-bounded read-through cache for project metadata.

Entries are keyed by ``(organization_id, project_id)`` and live in a
``cachetools.TTLCache``: they expire ``ttl_seconds`` after they were stored and
the least recently used entry is dropped once ``maxsize`` is reached. Writers
invalidate explicitly. The cache only ever serves navigation/detail payloads;
permission checks never read from it.

One instance lives on ``app.state.project_cache``; routes get it through the
``get_project_cache`` dependency.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Awaitable, Callable, Optional

from cachetools import TTLCache
from starlette.requests import Request

CacheKey = tuple[uuid.UUID, uuid.UUID]


class ProjectMetadataCache:
    def __init__(
        self,
        ttl_seconds: float = 300.0,
        maxsize: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.ttl_seconds = ttl_seconds
        self.maxsize = maxsize
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=clock)

    def __len__(self) -> int:
        # TTLCache drops expired entries before counting
        return len(self._entries)

    def get(self, org_id: uuid.UUID, project_id: uuid.UUID) -> Optional[Any]:
        return self._entries.get((org_id, project_id))

    def set(self, org_id: uuid.UUID, project_id: uuid.UUID, value: Any) -> None:
        self._entries[(org_id, project_id)] = value

    async def get_or_load(
        self,
        org_id: uuid.UUID,
        project_id: uuid.UUID,
        loader: Callable[[], Awaitable[Optional[Any]]],
    ) -> Optional[Any]:
        """Return the cached value, or await ``loader`` and cache a non-None result."""
        value = self.get(org_id, project_id)
        if value is not None:
            return value
        value = await loader()
        if value is not None:
            self.set(org_id, project_id, value)
        return value

    def invalidate(self, org_id: uuid.UUID, project_id: uuid.UUID) -> None:
        self._entries.pop((org_id, project_id), None)

    def invalidate_organization(self, org_id: uuid.UUID) -> None:
        for key in [k for k in list(self._entries) if k[0] == org_id]:
            self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


def get_project_cache(request: Request) -> ProjectMetadataCache:
    """FastAPI dependency returning the app-wide project cache."""
    return request.app.state.project_cache
