"""Session tracking on top of the token engine."""

import logging
from datetime import UTC, datetime, timedelta

import redis.asyncio as redis

from tenant_auth.config import Settings, get_settings
from tenant_auth.errors import (
    NoStoreConfiguredError,
    SessionNotFoundError,
    SessionRequiresStatefulStoreError,
)
from tenant_auth.sessions.models import (
    SESSION_FIELDS,
    SessionRecord,
    SessionStatus,
    SessionTokens,
    format_timestamp,
)
from tenant_auth.store.base import SessionStore
from tenant_auth.store.redis_store import (
    RedisSessionStore,
    create_redis_client,
    get_redis_client,
)
from tenant_auth.tokens.codec import new_identifier
from tenant_auth.tokens.engine import TokenEngine, get_token_engine

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates, updates, ends and lists sessions.

    Session records are hashes under ``session:{session_id}`` with a TTL
    set once at creation. Records are never deleted here; they expire or
    are marked inactive.
    """

    KEY_PREFIX = "session:"
    KEY_PATTERN = "session:*"

    def __init__(
        self,
        token_engine: TokenEngine,
        session_store: SessionStore | None = None,
        session_ttl: timedelta = timedelta(hours=24),
    ):
        """Initialize the session manager.

        Args:
            token_engine: Engine used to mint tokens for new sessions.
            session_store: Session store (required for every session operation).
            session_ttl: Lifetime of a session record.
        """
        self._engine = token_engine
        self._store = session_store
        self._ttl_seconds = int(session_ttl.total_seconds())

    @property
    def token_engine(self) -> TokenEngine:
        """Get the token engine."""
        return self._engine

    def _get_key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    def _require_store(self) -> SessionStore:
        if self._store is None:
            raise NoStoreConfiguredError("session store not configured")
        return self._store

    async def create_session(
        self,
        subject_id: str,
        tenant_id: str,
        tenant_type: str,
        device_info: str,
        ip_address: str,
    ) -> tuple[SessionRecord, str]:
        """Create a session for a logged-in device.

        Args:
            subject_id: Authenticated principal ID.
            tenant_id: Owning tenant ID.
            tenant_type: Tenant classification.
            device_info: Client device description.
            ip_address: Client IP address.

        Returns:
            Tuple of (session record, session ID).

        Raises:
            SessionRequiresStatefulStoreError: Unless the engine is stateful
                and a session store is configured.
            StoreError: If the record cannot be written.
        """
        if not self._engine.is_stateful() or self._store is None:
            raise SessionRequiresStatefulStoreError(
                "session management requires stateful mode with a session store"
            )

        session_id = new_identifier(subject_id)
        now = datetime.now(UTC).replace(microsecond=0)
        record = SessionRecord(
            subject_id=subject_id,
            tenant_id=tenant_id,
            tenant_type=tenant_type,
            device_info=device_info,
            ip_address=ip_address,
            last_seen_at=now,
            status=SessionStatus.ACTIVE,
            created_at=now,
        )

        await self._store.create(self._get_key(session_id), record.to_hash(), self._ttl_seconds)
        logger.debug("Created session %s", session_id)
        return record, session_id

    async def get_session(self, session_id: str) -> SessionRecord:
        """Get a session.

        Args:
            session_id: Session ID.

        Returns:
            Session record.

        Raises:
            SessionNotFoundError: If the session does not exist or expired.
        """
        store = self._require_store()
        key = self._get_key(session_id)

        if not await store.exists(key):
            raise SessionNotFoundError(f"session not found: {session_id}")

        values = await store.get_fields(key, SESSION_FIELDS)
        if all(value is None for value in values):
            # Expired between the two calls
            raise SessionNotFoundError(f"session not found: {session_id}")

        return SessionRecord.from_hash(dict(zip(SESSION_FIELDS, values)))

    async def _update(self, session_id: str, fields: dict[str, str]) -> None:
        store = self._require_store()
        if not await store.update(self._get_key(session_id), fields):
            raise SessionNotFoundError(f"session not found: {session_id}")

    async def update_session_last_seen(self, session_id: str) -> None:
        """Record activity on a session. The session TTL is not extended.

        Raises:
            SessionNotFoundError: If the session does not exist or expired.
        """
        await self._update(session_id, {"last_seen": format_timestamp(datetime.now(UTC))})

    async def end_session(self, session_id: str) -> None:
        """Mark a session inactive. The record stays until its TTL expires.

        Raises:
            SessionNotFoundError: If the session does not exist or expired.
        """
        await self._update(session_id, {"status": SessionStatus.INACTIVE.value})
        logger.debug("Ended session %s", session_id)

    async def get_user_sessions(self, subject_id: str) -> list[str]:
        """List the session IDs of a subject.

        Scans every session key and filters on the stored ``user_id``, so the
        cost grows with the total number of sessions in the store.

        Args:
            subject_id: Session owner.

        Returns:
            Session IDs owned by the subject.
        """
        store = self._require_store()
        keys = await store.scan(self.KEY_PATTERN)

        session_ids = []
        for key in keys:
            (owner,) = await store.get_fields(key, ["user_id"])
            if owner == subject_id:
                session_ids.append(key[len(self.KEY_PREFIX):])
        return session_ids

    async def generate_tokens_with_session(
        self,
        subject_id: str,
        tenant_id: str,
        tenant_type: str,
        device_info: str,
        ip_address: str,
    ) -> SessionTokens:
        """Create a session, then an access and refresh token.

        A token failure after the session is written leaves the session to
        expire with its TTL.

        Returns:
            SessionTokens(access_token, refresh_token, session_id).
        """
        _, session_id = await self.create_session(
            subject_id, tenant_id, tenant_type, device_info, ip_address
        )
        pair = await self._engine.generate_token_pair(subject_id, tenant_id, tenant_type)
        return SessionTokens(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            session_id=session_id,
        )

    async def refresh_tokens_with_session(
        self,
        refresh_token: str,
        device_info: str,
        ip_address: str,
    ) -> SessionTokens:
        """Rotate a refresh token into a new session and token pair.

        The old refresh token is revoked before anything new is created;
        any failure aborts the whole operation.

        Args:
            refresh_token: Refresh token being exchanged.
            device_info: Client device description.
            ip_address: Client IP address.

        Returns:
            SessionTokens for the new session.
        """
        if not self._engine.is_stateful() or self._store is None:
            raise SessionRequiresStatefulStoreError(
                "session management requires stateful mode with a session store"
            )
        claims = await self._engine.consume_refresh_token(refresh_token)
        return await self.generate_tokens_with_session(
            claims.subject_id,
            claims.tenant_id,
            claims.tenant_type,
            device_info,
            ip_address,
        )

    async def close(self) -> None:
        """Close the session store."""
        if self._store is not None:
            await self._store.close()


def create_session_manager(
    token_engine: TokenEngine,
    settings: Settings | None = None,
    session_store: SessionStore | None = None,
    redis_client: redis.Redis | None = None,
) -> SessionManager:
    """Build a session manager from settings.

    A stateful engine without an explicit store gets a Redis session store
    on ``redis_client`` (or a new client built from settings). A stateless
    engine gets no store.

    Args:
        token_engine: Token engine.
        settings: Application settings.
        session_store: Session store to use.
        redis_client: Redis client for the default store.

    Returns:
        SessionManager instance.
    """
    settings = settings or get_settings()
    if token_engine.is_stateful() and session_store is None:
        session_store = RedisSessionStore(redis_client or create_redis_client(settings))
    return SessionManager(token_engine, session_store, session_ttl=settings.session_ttl)


# Global session manager instance (lazily initialized)
_session_manager: SessionManager | None = None


def get_session_manager() -> SessionManager:
    """Get the global session manager instance.

    Returns:
        SessionManager instance.
    """
    global _session_manager
    if _session_manager is None:
        engine = get_token_engine()
        client = get_redis_client() if engine.is_stateful() else None
        _session_manager = create_session_manager(engine, redis_client=client)
    return _session_manager
