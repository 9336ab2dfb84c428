"""Tests for the session manager."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from tenant_auth.errors import (
    NoStoreConfiguredError,
    RefreshTokenNotFoundError,
    SessionNotFoundError,
    SessionRequiresStatefulStoreError,
)
from tenant_auth.sessions import (
    SESSION_FIELDS,
    SessionManager,
    SessionRecord,
    SessionStatus,
    create_session_manager,
)
from tenant_auth.store import MemorySessionStore, SessionStore
from tenant_auth.tokens import TokenEngine


class TestSessionRecord:
    """Tests for the session record model."""

    def test_hash_field_names(self):
        """Test that records serialize to the stored field names."""
        record = SessionRecord(subject_id="u1", tenant_id="a1", tenant_type="IATA")

        assert list(record.to_hash()) == SESSION_FIELDS

    def test_timestamp_format(self):
        """Test that timestamps are written as RFC 3339 UTC."""
        moment = datetime(2024, 5, 1, 12, 30, 45, tzinfo=UTC)
        record = SessionRecord(subject_id="u1", last_seen_at=moment, created_at=moment)

        fields = record.to_hash()

        assert fields["last_seen"] == "2024-05-01T12:30:45Z"
        assert fields["created_at"] == "2024-05-01T12:30:45Z"
        assert fields["status"] == "active"

    def test_from_hash(self):
        """Test that stored fields are read back into a record."""
        record = SessionRecord.from_hash(
            {
                "user_id": "u1",
                "agent_id": "a1",
                "agent_type": "IATA",
                "device_info": "iPhone",
                "ip_address": "10.0.0.1",
                "last_seen": "2024-05-01T12:30:45Z",
                "status": "inactive",
                "created_at": "2024-05-01T12:00:00Z",
            }
        )

        assert record.subject_id == "u1"
        assert record.device_info == "iPhone"
        assert record.status == SessionStatus.INACTIVE
        assert record.is_active is False
        assert record.last_seen_at == datetime(2024, 5, 1, 12, 30, 45, tzinfo=UTC)

    def test_from_hash_missing_fields(self):
        """Test that missing fields fall back to defaults."""
        record = SessionRecord.from_hash({"user_id": "u1"})

        assert record.tenant_id == ""
        assert record.last_seen_at is None
        assert record.is_active is True


class TestSessionLifecycle:
    """Tests for creating, updating and ending sessions."""

    @pytest.mark.asyncio
    async def test_memory_store_satisfies_protocol(self, session_store):
        """Test that the in-memory store implements the session protocol."""
        assert isinstance(session_store, SessionStore)

    @pytest.mark.asyncio
    async def test_create_and_get_session(self, session_manager):
        """Test that a created session can be read back."""
        record, session_id = await session_manager.create_session(
            "u1", "a1", "IATA", "iPhone", "10.0.0.1"
        )

        assert session_id.startswith("u1_")
        assert record.is_active

        stored = await session_manager.get_session(session_id)
        assert stored.subject_id == "u1"
        assert stored.tenant_id == "a1"
        assert stored.tenant_type == "IATA"
        assert stored.device_info == "iPhone"
        assert stored.ip_address == "10.0.0.1"
        assert stored.status == SessionStatus.ACTIVE
        assert stored.created_at == record.created_at
        assert stored.last_seen_at == record.last_seen_at

    @pytest.mark.asyncio
    async def test_session_ttl(self, session_manager, session_store):
        """Test that a session expires 24 hours after creation by default."""
        _, session_id = await session_manager.create_session("u1", "a1", "IATA", "", "")

        ttl = await session_store.ttl(f"session:{session_id}")

        assert timedelta(hours=23, minutes=59) < timedelta(seconds=ttl) <= timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_update_last_seen(self, session_manager, session_store):
        """Test that activity updates last_seen without extending the TTL."""
        _, session_id = await session_manager.create_session("u1", "a1", "IATA", "", "")
        key = f"session:{session_id}"
        await session_store.update(key, {"last_seen": "2000-01-01T00:00:00Z"})
        ttl_before = await session_store.ttl(key)

        await session_manager.update_session_last_seen(session_id)

        stored = await session_manager.get_session(session_id)
        assert stored.last_seen_at > datetime(2000, 1, 1, tzinfo=UTC)
        assert await session_store.ttl(key) <= ttl_before

    @pytest.mark.asyncio
    async def test_end_session(self, session_manager):
        """Test that ending a session marks it inactive but keeps it."""
        _, session_id = await session_manager.create_session("u1", "a1", "IATA", "", "")

        await session_manager.end_session(session_id)

        stored = await session_manager.get_session(session_id)
        assert stored.status == SessionStatus.INACTIVE
        assert stored.subject_id == "u1"

    @pytest.mark.asyncio
    async def test_unknown_session(self, session_manager):
        """Test that operations on an unknown session fail."""
        with pytest.raises(SessionNotFoundError):
            await session_manager.get_session("missing")
        with pytest.raises(SessionNotFoundError):
            await session_manager.update_session_last_seen("missing")
        with pytest.raises(SessionNotFoundError):
            await session_manager.end_session("missing")

    @pytest.mark.asyncio
    async def test_expired_session(self, stateful_engine, session_store):
        """Test that an expired session is gone and is not recreated by updates."""
        manager = SessionManager(stateful_engine, session_store, session_ttl=timedelta(0))
        _, session_id = await manager.create_session("u1", "a1", "IATA", "", "")

        with pytest.raises(SessionNotFoundError):
            await manager.update_session_last_seen(session_id)
        assert not await session_store.exists(f"session:{session_id}")

    @pytest.mark.asyncio
    async def test_get_user_sessions(self, session_manager):
        """Test that session listing is scoped to the subject."""
        _, first = await session_manager.create_session("u1", "a1", "IATA", "", "")
        _, second = await session_manager.create_session("u1", "a1", "IATA", "", "")
        _, other = await session_manager.create_session("u2", "a1", "IATA", "", "")

        sessions = await session_manager.get_user_sessions("u1")

        assert sorted(sessions) == sorted([first, second])
        assert other not in sessions
        assert await session_manager.get_user_sessions("nobody") == []

    @pytest.mark.asyncio
    async def test_ended_sessions_still_listed(self, session_manager):
        """Test that inactive sessions are listed until they expire."""
        _, session_id = await session_manager.create_session("u1", "a1", "IATA", "", "")
        await session_manager.end_session(session_id)

        assert await session_manager.get_user_sessions("u1") == [session_id]


class TestSessionModeGating:
    """Tests for session operations outside stateful mode."""

    @pytest.mark.asyncio
    async def test_create_requires_stateful_engine(self, engine, session_store):
        """Test that a stateless engine cannot create sessions."""
        manager = SessionManager(engine, session_store)

        with pytest.raises(SessionRequiresStatefulStoreError):
            await manager.create_session("u1", "a1", "IATA", "", "")
        with pytest.raises(SessionRequiresStatefulStoreError):
            await manager.generate_tokens_with_session("u1", "a1", "IATA", "", "")

    @pytest.mark.asyncio
    async def test_create_requires_store(self, stateful_engine):
        """Test that a stateful engine without a session store cannot create sessions."""
        manager = SessionManager(stateful_engine)

        with pytest.raises(SessionRequiresStatefulStoreError):
            await manager.create_session("u1", "a1", "IATA", "", "")

    @pytest.mark.asyncio
    async def test_operations_require_store(self, stateful_engine):
        """Test that reads and updates without a store fail."""
        manager = SessionManager(stateful_engine)

        with pytest.raises(NoStoreConfiguredError):
            await manager.get_session("u1_1")
        with pytest.raises(NoStoreConfiguredError):
            await manager.end_session("u1_1")
        with pytest.raises(NoStoreConfiguredError):
            await manager.get_user_sessions("u1")

    @pytest.mark.asyncio
    async def test_refresh_requires_stateful_engine(self, engine, session_store):
        """Test that session refresh is refused for a stateless engine."""
        manager = SessionManager(engine, session_store)
        refresh_token = await engine.generate_refresh_token("u1")

        with pytest.raises(SessionRequiresStatefulStoreError):
            await manager.refresh_tokens_with_session(refresh_token, "", "")

    def test_factory_without_store_for_stateless_engine(self, engine):
        """Test that the factory gives a stateless engine no session store."""
        manager = create_session_manager(engine)

        assert manager.token_engine is engine
        assert manager._store is None


class TestTokensWithSession:
    """Tests for issuing tokens together with sessions."""

    @pytest.mark.asyncio
    async def test_generate_tokens_with_session(self, session_manager, stateful_engine):
        """Test that a session and a token pair are issued together."""
        tokens = await session_manager.generate_tokens_with_session(
            "u1", "a1", "IATA", "iPhone", "10.0.0.1"
        )

        session = await session_manager.get_session(tokens.session_id)
        assert session.device_info == "iPhone"
        access_claims = stateful_engine.validate_access_token(tokens.access_token)
        refresh_claims = await stateful_engine.validate_refresh_token(tokens.refresh_token)
        assert access_claims.subject_id == refresh_claims.subject_id == "u1"

    @pytest.mark.asyncio
    async def test_refresh_tokens_with_session(self, session_manager, stateful_engine):
        """Test that refreshing rotates the token into a new session."""
        original = await session_manager.generate_tokens_with_session(
            "u1", "a1", "IATA", "iPhone", "10.0.0.1"
        )

        refreshed = await session_manager.refresh_tokens_with_session(
            original.refresh_token, "Pixel", "10.0.0.2"
        )

        assert refreshed.session_id != original.session_id
        session = await session_manager.get_session(refreshed.session_id)
        assert session.device_info == "Pixel"
        assert session.ip_address == "10.0.0.2"
        assert session.tenant_id == "a1"
        with pytest.raises(RefreshTokenNotFoundError):
            await stateful_engine.validate_refresh_token(original.refresh_token)
        with pytest.raises(RefreshTokenNotFoundError):
            await session_manager.refresh_tokens_with_session(original.refresh_token, "", "")

    @pytest.mark.asyncio
    async def test_failed_refresh_creates_no_session(self, session_manager, session_store):
        """Test that an invalid refresh token leaves no new session behind."""
        unrecorded = TokenEngine(session_manager.token_engine.config)
        refresh_token = await unrecorded.generate_refresh_token("u1")
        session_store.create = AsyncMock(wraps=session_store.create)

        with pytest.raises(RefreshTokenNotFoundError):
            await session_manager.refresh_tokens_with_session(refresh_token, "", "")

        session_store.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_close(self, session_manager):
        """Test that closing the manager closes its store."""
        await session_manager.close()
