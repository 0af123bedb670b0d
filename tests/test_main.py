"""Tests for process bootstrap and login lifecycle."""

import pytest

from deploydeck.core.config import Settings
from deploydeck.core.diagnostics import RecordingSink
from deploydeck.core.security import generate_key
from deploydeck.main import bootstrap


@pytest.fixture
async def ctx(tmp_path):
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'deploydeck.db'}",
        api_base_url="https://api.test",
        encryption_key=generate_key(),
    )
    context = await bootstrap(settings, sink=RecordingSink())
    yield context
    await context.aclose()


@pytest.mark.asyncio
async def test_logged_out_has_no_client(ctx):
    assert await ctx.client() is None
    assert await ctx.repository() is None


@pytest.mark.asyncio
async def test_login_builds_scoped_client(ctx):
    await ctx.login("tok_1", team_id="team_1")
    client = await ctx.client()
    try:
        assert client.team_id == "team_1"
    finally:
        await client.aclose()

    await ctx.switch_team(None)
    async with await ctx.repository() as repo:
        assert repo.client.team_id is None
    assert repo.client._client.is_closed


@pytest.mark.asyncio
async def test_logout_clears_credentials_and_cache(ctx):
    await ctx.login("tok_1")
    await ctx.cache.set("user:projects", [1])
    await ctx.store.set_item("unrelated", "keep")

    await ctx.logout()

    assert await ctx.client() is None
    assert await ctx.cache.get("user:projects") is None
    assert await ctx.store.get_all_keys() == ["unrelated"]


@pytest.mark.asyncio
async def test_cache_survives_restart(tmp_path):
    settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'restart.db'}")

    first = await bootstrap(settings, sink=RecordingSink())
    await first.cache.set("user:projects", [{"id": "p1"}])
    await first.aclose()

    second = await bootstrap(settings, sink=RecordingSink())
    try:
        assert await second.cache.get("user:projects") == [{"id": "p1"}]
    finally:
        await second.aclose()
