"""Application settings loaded from environment / .env file."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# Five minutes, matching CacheDurations.MEDIUM
_MEDIUM_MS = 5 * 60 * 1000


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Remote API ────────────────────────────────────────
    api_base_url: str = "https://api.vercel.com"
    request_timeout_seconds: float = 30.0

    # ── Durable key-value storage ─────────────────────────
    database_url: str = "sqlite+aiosqlite:///./deploydeck.db"

    # ── Cache ─────────────────────────────────────────────
    cache_prefix: str = "@deploydeck_cache_"
    default_cache_max_age_ms: int = _MEDIUM_MS

    # ── Security ──────────────────────────────────────────
    encryption_key: str = ""  # Fernet key; empty stores the token unencrypted

    # ── Logging ───────────────────────────────────────────
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
