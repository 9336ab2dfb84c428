"""In-memory stores with TTL, for tests and single-process development."""

import logging
import threading
import time
from datetime import UTC, datetime
from fnmatch import fnmatchcase

from tenant_auth.store.redis_store import escape_pattern, is_subject_token_key

logger = logging.getLogger(__name__)


class MemoryTokenStore:
    """Refresh token store kept in a dict.

    Mirrors the Redis key layout so scans behave the same.
    """

    KEY_PREFIX = "refresh_token"

    def __init__(self) -> None:
        self._data_lock = threading.Lock()
        self._tokens: dict[str, tuple[str, datetime]] = {}

    def _get_key(self, subject_id: str, token_id: str) -> str:
        return f"{self.KEY_PREFIX}:{subject_id}:{token_id}"

    @staticmethod
    def _is_live(expires_at: datetime) -> bool:
        return expires_at > datetime.now(UTC)

    async def save(
        self, subject_id: str, token_id: str, token: str, expires_at: datetime
    ) -> None:
        with self._data_lock:
            self._tokens[self._get_key(subject_id, token_id)] = (token, expires_at)

    async def get(self, subject_id: str, token_id: str) -> str | None:
        with self._data_lock:
            entry = self._tokens.get(self._get_key(subject_id, token_id))
        if entry is None or not self._is_live(entry[1]):
            return None
        return entry[0]

    async def delete(self, subject_id: str, token_id: str) -> bool:
        with self._data_lock:
            entry = self._tokens.pop(self._get_key(subject_id, token_id), None)
        return entry is not None and self._is_live(entry[1])

    async def delete_all(self, subject_id: str) -> int:
        pattern = f"{self.KEY_PREFIX}:{escape_pattern(subject_id)}:*"
        with self._data_lock:
            keys = [
                k
                for k in self._tokens
                if _matches(k, pattern)
                and is_subject_token_key(k, self.KEY_PREFIX, subject_id)
            ]
            removed = [self._tokens.pop(k) for k in keys]
        return sum(1 for _, expires_at in removed if self._is_live(expires_at))

    async def cleanup(self) -> int:
        """Drop expired records."""
        with self._data_lock:
            stale = [k for k, (_, exp) in self._tokens.items() if not self._is_live(exp)]
            for key in stale:
                del self._tokens[key]
        if stale:
            logger.debug("Purged %d expired refresh tokens", len(stale))
        return len(stale)

    async def close(self) -> None:
        pass


class MemorySessionStore:
    """Session hash store kept in a dict, with monotonic-clock TTLs."""

    def __init__(self) -> None:
        self._data_lock = threading.Lock()
        self._hashes: dict[str, dict[str, str]] = {}
        self._deadlines: dict[str, float] = {}

    def _live(self, key: str) -> dict[str, str] | None:
        # Caller holds the lock.
        deadline = self._deadlines.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self._hashes.pop(key, None)
            self._deadlines.pop(key, None)
        return self._hashes.get(key)

    async def create(self, key: str, fields: dict[str, str], ttl_seconds: int) -> None:
        with self._data_lock:
            current = self._live(key) or {}
            self._hashes[key] = {**current, **fields}
            self._deadlines[key] = time.monotonic() + ttl_seconds

    async def update(self, key: str, fields: dict[str, str]) -> bool:
        with self._data_lock:
            current = self._live(key)
            if current is None:
                return False
            current.update(fields)
        return True

    async def get_fields(self, key: str, fields: list[str]) -> list[str | None]:
        with self._data_lock:
            current = self._live(key) or {}
            return [current.get(name) for name in fields]

    async def exists(self, key: str) -> bool:
        with self._data_lock:
            return self._live(key) is not None

    async def scan(self, pattern: str) -> list[str]:
        with self._data_lock:
            live = [k for k in list(self._hashes) if self._live(k) is not None]
        return [k for k in live if _matches(k, pattern)]

    async def ttl(self, key: str) -> float | None:
        """Remaining lifetime of a key in seconds, None if absent."""
        with self._data_lock:
            if self._live(key) is None:
                return None
            return self._deadlines[key] - time.monotonic()

    async def close(self) -> None:
        pass


def _matches(key: str, pattern: str) -> bool:
    """Redis-style glob match, honouring backslash escapes."""
    # fnmatch has no escape character; turn each escaped char into a literal.
    translated: list[str] = []
    chars = iter(pattern)
    for c in chars:
        if c != "\\":
            translated.append(c)
            continue
        escaped = next(chars, "\\")
        if escaped == "]":
            translated.append("]")
        else:
            translated.append(f"[{escaped}]")
    return fnmatchcase(key, "".join(translated))
