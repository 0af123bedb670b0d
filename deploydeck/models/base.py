"""Shared time helpers for persisted rows and cache entries."""

import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware UTC now; naive datetimes are rejected by the row models."""
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    """Wall-clock time in epoch milliseconds.

    Cache timestamps must survive a restart, so this is deliberately not
    ``time.monotonic``.
    """
    return int(time.time() * 1000)
