"""Async database engine and session factory backing the key-value store."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

# Ensure the kv_store table is registered on SQLModel.metadata
import deploydeck.models  # noqa: F401


def create_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for the on-device database."""
    return create_async_engine(database_url, echo=False)


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables. Use Alembic migrations for upgrades of existing installs."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
