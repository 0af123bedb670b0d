"""Durable key-value storage on top of the async SQL engine.

Shared process-wide: the freshness cache and the credential store both keep
their records here, separated only by key prefix. Every operation opens its
own short session, so no lock is held across calls.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select

from deploydeck.core.errors import StorageError
from deploydeck.models.base import utcnow
from deploydeck.models.kv import KeyValue

logger = logging.getLogger(__name__)

# Dialects with a native INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


class KeyValueStore:
    """String-to-string storage; every failure surfaces as ``StorageError``."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    async def get_item(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(KeyValue, key)
                return None if row is None else row.value
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to read {key!r}") from exc

    async def set_item(self, key: str, value: str) -> None:
        """Insert or overwrite ``key`` in a single statement.

        Concurrent writers to the same new key both succeed; the last one wins.
        """
        try:
            async with self._session_factory() as session:
                insert = _UPSERT_INSERTS.get(session.get_bind().dialect.name)
                if insert is None:
                    await session.merge(KeyValue(key=key, value=value, updated_at=utcnow()))
                else:
                    stmt = insert(KeyValue).values(key=key, value=value, updated_at=utcnow())
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["key"],
                        set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
                    )
                    await session.execute(stmt)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to write {key!r}") from exc

    async def remove_item(self, key: str) -> None:
        """Delete ``key``; a missing key is not an error."""
        await self.multi_remove([key])

    async def get_all_keys(self) -> list[str]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(KeyValue.key))
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError("Failed to enumerate keys") from exc

    async def multi_remove(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            async with self._session_factory() as session:
                await session.execute(delete(KeyValue).where(col(KeyValue.key).in_(keys)))
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Failed to remove {len(keys)} keys") from exc
        logger.debug("Removed %d keys", len(keys))
