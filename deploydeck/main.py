"""Process bootstrap: build the shared storage, cache and credential store once."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncEngine

from deploydeck.core.cache import FreshnessCache
from deploydeck.core.config import Settings, get_settings
from deploydeck.core.database import create_engine, create_session_factory, init_db
from deploydeck.core.diagnostics import DiagnosticSink, LoggingSink
from deploydeck.services.credentials import Credentials, CredentialStore
from deploydeck.services.kv_store import KeyValueStore
from deploydeck.services.repository import ResourceRepository
from deploydeck.services.vercel_api import VercelClient

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything with process lifetime; pass it to whatever needs it."""
    settings: Settings
    engine: AsyncEngine
    store: KeyValueStore
    cache: FreshnessCache
    credentials: CredentialStore
    sink: DiagnosticSink = field(default_factory=LoggingSink)

    async def client(self) -> VercelClient | None:
        """A new client for the stored login, or None when logged out.

        The caller owns the returned client and must ``aclose`` it (or use it
        as an async context manager).
        """
        creds = await self.credentials.load()
        if creds is None:
            return None
        return self.client_for(creds)

    def client_for(self, creds: Credentials) -> VercelClient:
        return VercelClient(
            creds.token,
            creds.team_id,
            base_url=self.settings.api_base_url,
            timeout=self.settings.request_timeout_seconds,
            sink=self.sink,
        )

    async def repository(self) -> ResourceRepository | None:
        """A repository over a new client; the caller closes it via ``aclose``."""
        client = await self.client()
        if client is None:
            return None
        return ResourceRepository(self.cache, client)

    async def login(self, token: str, team_id: str | None = None) -> None:
        await self.credentials.save_token(token)
        await self.credentials.set_team_id(team_id)

    async def switch_team(self, team_id: str | None) -> None:
        """Change tenant scope. Cached data stays; keys are already scoped."""
        await self.credentials.set_team_id(team_id)

    async def logout(self) -> None:
        """Forget the login and every cached response."""
        await self.credentials.logout()
        await self.cache.clear_all()

    async def aclose(self) -> None:
        await self.engine.dispose()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def bootstrap(
    settings: Settings | None = None,
    *,
    sink: DiagnosticSink | None = None,
) -> AppContext:
    """Open the on-device database and wire up the shared components."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    engine = create_engine(settings.database_url)
    await init_db(engine)

    sink = sink or LoggingSink()
    store = KeyValueStore(create_session_factory(engine))
    cache = FreshnessCache(
        store,
        prefix=settings.cache_prefix,
        default_max_age_ms=settings.default_cache_max_age_ms,
        sink=sink,
    )
    logger.info("DeployDeck storage ready at %s", settings.database_url)
    return AppContext(
        settings=settings,
        engine=engine,
        store=store,
        cache=cache,
        credentials=CredentialStore(store, settings.encryption_key),
        sink=sink,
    )
