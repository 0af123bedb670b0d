"""Cache-through access to Vercel resources.

Screens read lists through here: a fresh cache entry is returned as-is,
anything else is fetched from the API and written back. Mutations invalidate
the list keys they affect. Keys are scoped to the client's team, so
switching teams never shows another scope's data.

Concurrent misses for one key each hit the API; nothing is deduplicated.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from deploydeck.core.cache import CacheDurations, CacheKeys, FreshnessCache, cache_key
from deploydeck.models.resources import Deployment, Domain, Project, Team, User
from deploydeck.services.vercel_api import VercelClient

logger = logging.getLogger(__name__)

# Page sizes the dashboard asks for
PROJECTS_LIMIT = 100
DEPLOYMENTS_LIMIT = 50
DOMAINS_LIMIT = 100

_MISSING = object()


class ResourceRepository:
    """Owns ``client``: closing the repository closes the HTTP connection pool.

        async with ResourceRepository(cache, client) as repo:
            projects = await repo.projects()
    """

    def __init__(self, cache: FreshnessCache, client: VercelClient) -> None:
        self.cache = cache
        self.client = client

    async def __aenter__(self) -> ResourceRepository:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def key(self, resource: str, **params: Any) -> str:
        return cache_key(resource, self.client.team_id, **params)

    async def fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        *,
        max_age: float | None = None,
        force_refresh: bool = False,
        schema: Any = None,
    ) -> Any:
        """Return the cached value for ``key`` or fetch, store and return it.

        ``force_refresh`` skips the cache read (pull-to-refresh). API errors
        propagate; nothing is written when the fetch fails.
        """
        if not force_refresh:
            cached = await self.cache.get(key, max_age, schema=schema, default=_MISSING)
            if cached is not _MISSING:
                return cached

        value = await fetcher()
        await self.cache.set(key, value)
        return value

    async def peek_stale(self, key: str, schema: Any = None) -> Any:
        """Return whatever is cached regardless of age, for stale-while-revalidate."""
        return await self.cache.get(key, float("inf"), schema=schema)

    # ── Lists ────────────────────────────────────────────────

    async def projects(
        self, *, force_refresh: bool = False, max_age: float = CacheDurations.MEDIUM
    ) -> list[Project]:
        async def _load() -> list[Project]:
            return (await self.client.list_projects(PROJECTS_LIMIT)).items

        return await self.fetch(
            self.key(CacheKeys.PROJECTS, limit=PROJECTS_LIMIT),
            _load,
            max_age=max_age,
            force_refresh=force_refresh,
            schema=list[Project],
        )

    async def deployments(
        self,
        project_id: str | None = None,
        *,
        force_refresh: bool = False,
        max_age: float = CacheDurations.SHORT,
    ) -> list[Deployment]:
        async def _load() -> list[Deployment]:
            page = await self.client.list_deployments(DEPLOYMENTS_LIMIT, project_id=project_id)
            return page.items

        return await self.fetch(
            self.key(CacheKeys.DEPLOYMENTS, limit=DEPLOYMENTS_LIMIT, projectId=project_id),
            _load,
            max_age=max_age,
            force_refresh=force_refresh,
            schema=list[Deployment],
        )

    async def domains(
        self, *, force_refresh: bool = False, max_age: float = CacheDurations.LONG
    ) -> list[Domain]:
        async def _load() -> list[Domain]:
            return (await self.client.list_domains(DOMAINS_LIMIT)).items

        return await self.fetch(
            self.key(CacheKeys.DOMAINS, limit=DOMAINS_LIMIT),
            _load,
            max_age=max_age,
            force_refresh=force_refresh,
            schema=list[Domain],
        )

    async def current_user(
        self, *, force_refresh: bool = False, max_age: float = CacheDurations.LONG
    ) -> User:
        return await self.fetch(
            self.key(CacheKeys.USER),
            self.client.get_current_user,
            max_age=max_age,
            force_refresh=force_refresh,
            schema=User,
        )

    async def teams(
        self, *, force_refresh: bool = False, max_age: float = CacheDurations.LONG
    ) -> list[Team]:
        async def _load() -> list[Team]:
            return [team async for team in self.client.paginate(self.client.list_teams)]

        # Team membership is the same in every scope
        return await self.fetch(
            cache_key(CacheKeys.TEAMS),
            _load,
            max_age=max_age,
            force_refresh=force_refresh,
            schema=list[Team],
        )

    # ── Mutations ────────────────────────────────────────────

    async def delete_project(self, project_id: str) -> dict:
        result = await self.client.delete_project(project_id)
        await self._invalidate(CacheKeys.PROJECTS, CacheKeys.DEPLOYMENTS)
        return result

    async def cancel_deployment(self, deployment_id: str) -> dict:
        result = await self.client.cancel_deployment(deployment_id)
        await self._invalidate(CacheKeys.DEPLOYMENTS)
        return result

    async def delete_deployment(self, deployment_id: str) -> dict:
        result = await self.client.delete_deployment(deployment_id)
        await self._invalidate(CacheKeys.DEPLOYMENTS, CacheKeys.PROJECTS)
        return result

    async def add_domain(self, name: str, project_id: str | None = None) -> dict:
        result = await self.client.add_domain(name, project_id)
        await self._invalidate(CacheKeys.DOMAINS)
        return result

    async def remove_domain(self, domain: str) -> dict:
        result = await self.client.remove_domain(domain)
        await self._invalidate(CacheKeys.DOMAINS)
        return result

    async def _invalidate(self, *resources: str) -> None:
        """Drop every cached variant of ``resources`` in the current scope."""
        for resource in resources:
            await self.cache.remove_prefix(self.key(resource))
        logger.debug("Invalidated %s", ", ".join(resources))
