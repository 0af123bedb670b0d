"""Persistent TTL cache for API responses.

Entries are stored in the durable key-value store as JSON
``{"data": <payload>, "timestamp": <epoch ms>}`` under a reserved key prefix.
Freshness is a property of the *read*: every ``get`` names the maximum age it
accepts, so a pull-to-refresh can demand ``max_age=0`` while a cold start
tolerates ``CacheDurations.MEDIUM`` for the same entry.

Expiry is lazy. There is no sweeper; a read that finds an entry older than its
``max_age`` removes it and reports a miss. The read and the removal are two
separate storage calls, so a concurrent writer can slip in between them; the
removal is cleanup only and correctness rests on the age check alone.

No operation raises. Storage and (de)serialization failures are reported to
the diagnostic sink and degrade to a miss (reads) or a no-op (writes), which
at worst costs one extra network fetch.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum, StrEnum
from functools import lru_cache
from typing import Any
from urllib.parse import quote

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from deploydeck.core.diagnostics import DiagnosticEvent, DiagnosticSink, LoggingSink
from deploydeck.core.errors import StorageError
from deploydeck.models.base import epoch_ms
from deploydeck.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "@deploydeck_cache_"


class CacheDurations(IntEnum):
    """Named maximum ages in milliseconds; pick one instead of a raw literal."""
    SHORT = 2 * 60 * 1000
    MEDIUM = 5 * 60 * 1000
    LONG = 15 * 60 * 1000
    VERY_LONG = 60 * 60 * 1000


DEFAULT_MAX_AGE = CacheDurations.MEDIUM


class CacheKeys(StrEnum):
    PROJECTS = "projects"
    DEPLOYMENTS = "deployments"
    DOMAINS = "domains"
    USER = "user"
    TEAMS = "teams"


def cache_key(resource: str, team_id: str | None = None, **params: Any) -> str:
    """Build a deterministic key for ``resource`` under a tenant scope.

    The personal account and every team get disjoint key spaces. Parameters
    are sorted and ``None`` values dropped, so equivalent requests share a key.

        >>> cache_key("deployments", "team_1", limit=20, projectId=None)
        'team=team_1:deployments?limit=20'
    """
    scope = f"team={quote(team_id, safe='')}" if team_id else "user"
    key = f"{scope}:{resource}"
    parts = [
        f"{quote(name, safe='')}={quote(str(params[name]), safe='')}"
        for name in sorted(params)
        if params[name] is not None
    ]
    if parts:
        key += "?" + "&".join(parts)
    return key


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: int  # epoch ms, fixed at write time

    def age_ms(self, now: int) -> int:
        return now - self.stored_at

    def is_fresh(self, now: int, max_age: float) -> bool:
        return self.age_ms(now) <= max_age


def encode_entry(entry: CacheEntry) -> str:
    return json.dumps(
        {"data": entry.value, "timestamp": entry.stored_at},
        allow_nan=False,
        separators=(",", ":"),
    )


def decode_entry(raw: str) -> CacheEntry:
    """Parse a persisted entry. Raises ``ValueError`` on any malformed payload."""
    record = json.loads(raw)
    if not isinstance(record, dict) or "data" not in record:
        raise ValueError("cache record is missing 'data'")
    stored_at = record.get("timestamp")
    if isinstance(stored_at, bool) or not isinstance(stored_at, int):
        raise ValueError("cache record has no integer 'timestamp'")
    return CacheEntry(value=record["data"], stored_at=stored_at)


@lru_cache(maxsize=64)
def _adapter(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


class FreshnessCache:
    """TTL cache over a ``KeyValueStore``.

    Construct one per process and hand it to whatever needs it.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        prefix: str = DEFAULT_PREFIX,
        default_max_age_ms: float = DEFAULT_MAX_AGE,
        clock: Callable[[], int] = epoch_ms,
        sink: DiagnosticSink | None = None,
    ) -> None:
        if not prefix:
            raise ValueError("cache prefix must not be empty")
        self._store = store
        self.prefix = prefix
        self.default_max_age_ms = default_max_age_ms
        self._clock = clock
        self._sink = sink or LoggingSink(logger)

    # ── Public API ───────────────────────────────────────────

    async def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` stamped with the current time.

        ``value`` may be any JSON-compatible structure or pydantic model.
        Failures are reported and swallowed; the next read will simply miss.
        """
        try:
            payload = to_jsonable_python(value, by_alias=True)
            raw = encode_entry(CacheEntry(value=payload, stored_at=self._clock()))
        except (PydanticSerializationError, TypeError, ValueError) as exc:
            self._emit("cache.storage_error", logging.ERROR, key=key, op="serialize", error=exc)
            return
        try:
            await self._store.set_item(self._storage_key(key), raw)
        except StorageError as exc:
            self._emit("cache.storage_error", logging.ERROR, key=key, op="set", error=exc)
            return
        self._emit("cache.set", key=key)

    async def get_entry(self, key: str, max_age: float | None = None) -> CacheEntry | None:
        """Return the fresh entry for ``key`` or None.

        A stale entry is removed before returning None, so a later read with
        a larger ``max_age`` will not resurrect it.
        """
        max_age = self.default_max_age_ms if max_age is None else max_age
        entry = await self._read(key)
        if entry is None:
            return None

        now = self._clock()
        if not entry.is_fresh(now, max_age):
            self._emit("cache.expired", key=key, age_ms=entry.age_ms(now), max_age=max_age)
            await self.remove(key)
            return None

        self._emit("cache.hit", key=key, age_ms=entry.age_ms(now))
        return entry

    async def get(
        self,
        key: str,
        max_age: float | None = None,
        *,
        schema: Any = None,
        default: Any = None,
    ) -> Any:
        """Return the cached value, or ``default`` when absent, stale or unreadable.

        With ``schema`` (any type pydantic can validate, e.g. ``list[Project]``)
        the payload is validated into that type; a payload of the wrong shape
        counts as a miss.
        """
        entry = await self.get_entry(key, max_age)
        if entry is None:
            return default
        if schema is None:
            return entry.value
        try:
            return _adapter(schema).validate_python(entry.value)
        except SchemaError as exc:
            self._emit("cache.corrupt", logging.WARNING, key=key, error=exc)
            return default

    async def remove(self, key: str) -> None:
        """Delete ``key``. Removing an absent key is a no-op."""
        try:
            await self._store.remove_item(self._storage_key(key))
        except StorageError as exc:
            self._emit("cache.storage_error", logging.ERROR, key=key, op="remove", error=exc)
            return
        self._emit("cache.remove", key=key)

    async def clear_all(self) -> None:
        """Delete every entry under this cache's prefix and nothing else."""
        try:
            keys = [k for k in await self._store.get_all_keys() if k.startswith(self.prefix)]
            await self._store.multi_remove(keys)
        except StorageError as exc:
            self._emit("cache.storage_error", logging.ERROR, op="clear", error=exc)
            return
        self._emit("cache.clear", count=len(keys))

    async def remove_prefix(self, key_prefix: str) -> None:
        """Delete every entry whose key starts with ``key_prefix``.

        Used to drop all parameter variants of one resource, e.g. every cached
        ``team=t1:deployments?...`` page after a deployment is cancelled.
        """
        storage_prefix = self._storage_key(key_prefix)
        try:
            keys = [k for k in await self._store.get_all_keys() if k.startswith(storage_prefix)]
            await self._store.multi_remove(keys)
        except StorageError as exc:
            self._emit("cache.storage_error", logging.ERROR, key=key_prefix, op="remove", error=exc)
            return
        self._emit("cache.remove", key=key_prefix, count=len(keys))

    async def is_valid(self, key: str, max_age: float | None = None) -> bool:
        """Same freshness rule as ``get`` but never evicts."""
        max_age = self.default_max_age_ms if max_age is None else max_age
        entry = await self._read(key)
        return entry is not None and entry.is_fresh(self._clock(), max_age)

    async def age(self, key: str) -> int | None:
        """Milliseconds since ``key`` was stored, or None if there is no entry."""
        entry = await self._read(key)
        if entry is None:
            return None
        return entry.age_ms(self._clock())

    # ── Internals ────────────────────────────────────────────

    def _storage_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def _read(self, key: str) -> CacheEntry | None:
        try:
            raw = await self._store.get_item(self._storage_key(key))
        except StorageError as exc:
            self._emit("cache.storage_error", logging.ERROR, key=key, op="get", error=exc)
            return None
        if raw is None:
            self._emit("cache.miss", key=key)
            return None
        try:
            return decode_entry(raw)
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError subclass
            self._emit("cache.corrupt", logging.WARNING, key=key, error=exc)
            return None

    def _emit(
        self,
        name: str,
        level: int = logging.DEBUG,
        *,
        error: BaseException | None = None,
        **fields: Any,
    ) -> None:
        self._sink.emit(DiagnosticEvent(name=name, level=level, fields=fields, error=error))
