"""Persisted login: API token and selected team.

Both values live in the shared key-value store outside the cache namespace,
so ``FreshnessCache.clear_all`` never logs the user out. Unlike the cache,
failures here propagate: a login that silently failed to persist would log
the user out on the next start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from deploydeck.core.security import decrypt_value, encrypt_value
from deploydeck.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

TOKEN_KEY = "@deploydeck_token"
TEAM_ID_KEY = "@deploydeck_team_id"

# Marks a Fernet-encrypted token so plaintext tokens from before a key was
# configured are still readable.
_ENCRYPTED_MARKER = "fernet:"


@dataclass(frozen=True)
class Credentials:
    token: str
    team_id: str | None = None


class CredentialStore:
    def __init__(self, store: KeyValueStore, encryption_key: str = "") -> None:
        self._store = store
        self._encryption_key = encryption_key

    async def load(self) -> Credentials | None:
        """Return stored credentials, or None when logged out."""
        raw_token = await self._store.get_item(TOKEN_KEY)
        if not raw_token:
            return None
        team_id = await self._store.get_item(TEAM_ID_KEY)
        return Credentials(token=self._decode(raw_token), team_id=team_id or None)

    async def save_token(self, token: str) -> None:
        if not token:
            raise ValueError("Token must not be empty")
        await self._store.set_item(TOKEN_KEY, self._encode(token))
        logger.info("Stored API token (encrypted=%s)", bool(self._encryption_key))

    async def set_team_id(self, team_id: str | None) -> None:
        """Select a team scope; None switches back to the personal account."""
        if team_id:
            await self._store.set_item(TEAM_ID_KEY, team_id)
        else:
            await self._store.remove_item(TEAM_ID_KEY)

    async def logout(self) -> None:
        await self._store.multi_remove([TOKEN_KEY, TEAM_ID_KEY])
        logger.info("Cleared stored credentials")

    def _encode(self, token: str) -> str:
        if not self._encryption_key:
            return token
        return _ENCRYPTED_MARKER + encrypt_value(token, self._encryption_key)

    def _decode(self, raw: str) -> str:
        if not raw.startswith(_ENCRYPTED_MARKER):
            return raw
        return decrypt_value(raw[len(_ENCRYPTED_MARKER):], self._encryption_key)
