"""Tests for SessionService."""

from datetime import UTC, datetime, timedelta

import pytest

from kodus_flow.config.models.context import SessionConfig
from kodus_flow.context.session import SessionService, SessionStatus


def age(session, seconds: float) -> None:
    session.last_activity = datetime.now(UTC) - timedelta(seconds=seconds)


class TestSessionLookup:
    """Tests for creating and finding sessions."""

    def test_create_and_find_by_thread(self) -> None:
        service = SessionService()
        session = service.create_session("tenant-a", "thread-1", {"channel": "cli"})

        assert service.get_session(session.id) is session
        assert service.find_session_by_thread("thread-1") is session
        assert service.find_session_by_thread("thread-1", "tenant-a") is session
        assert service.find_session_by_thread("thread-1", "tenant-b") is None
        assert session.metadata == {"channel": "cli"}

    def test_closed_session_not_found_by_thread(self) -> None:
        service = SessionService()
        session = service.create_session("tenant-a", "thread-1")
        service.close_session(session.id)
        assert service.find_session_by_thread("thread-1") is None

    def test_pause_and_resume(self) -> None:
        service = SessionService()
        session = service.create_session("tenant-a", "thread-1")
        assert service.pause_session(session.id)
        assert service.find_session_by_thread("thread-1") is None
        assert service.resume_session(session.id)
        assert service.find_session_by_thread("thread-1") is session

    def test_find_sessions_filters(self) -> None:
        service = SessionService()
        service.create_session("tenant-a", "thread-1")
        service.create_session("tenant-b", "thread-1")
        assert len(service.find_sessions(thread_id="thread-1")) == 2
        assert len(service.find_sessions(tenant_id="tenant-b")) == 1


class TestSessionExpiry:
    """Tests for timeout handling."""

    def test_idle_session_expires_on_access(self) -> None:
        service = SessionService(SessionConfig(session_timeout_seconds=60))
        session = service.create_session("tenant-a", "thread-1")
        age(session, 120)

        assert service.find_session_by_thread("thread-1") is None
        fetched = service.get_session(session.id)
        assert fetched is session
        assert fetched.status == SessionStatus.EXPIRED
        assert service.get_session_context(session.id) is None

    def test_cleanup_expired_sessions(self) -> None:
        service = SessionService(SessionConfig(session_timeout_seconds=60))
        stale = service.create_session("tenant-a", "thread-1")
        service.create_session("tenant-a", "thread-2")
        age(stale, 120)

        assert service.cleanup_expired_sessions() == 1
        assert service.cleanup_expired_sessions() == 0
        assert service.get_session_stats()["expired"] == 1


class TestSessionCapacity:
    """Tests for LRU eviction."""

    def test_least_recently_active_evicted(self) -> None:
        service = SessionService(SessionConfig(max_sessions=2))
        oldest = service.create_session("tenant-a", "thread-1")
        recent = service.create_session("tenant-a", "thread-2")
        age(oldest, 30)
        age(recent, 10)

        newest = service.create_session("tenant-a", "thread-3")

        assert service.get_session(oldest.id) is None
        assert service.get_session(recent.id) is recent
        assert service.get_session(newest.id) is newest
        assert service.get_session_stats()["total"] == 2


class TestConversationHistory:
    """Tests for conversation entries and context data."""

    def test_history_is_capped(self) -> None:
        service = SessionService(SessionConfig(max_conversation_history=3))
        session = service.create_session("tenant-a", "thread-1")
        for i in range(5):
            service.add_conversation_entry(session.id, f"in-{i}", f"out-{i}", "Echo")

        history = service.get_conversation_history(session.id)
        assert [entry.input for entry in history] == ["in-2", "in-3", "in-4"]

    def test_add_message_roles(self) -> None:
        service = SessionService()
        session = service.create_session("tenant-a", "thread-1")
        service.add_message(session.id, "user", "hi")
        service.add_message(session.id, "assistant", "hello")

        user, assistant = service.get_conversation_history(session.id)
        assert (user.input, user.output, user.metadata["role"]) == ("hi", None, "user")
        assert (assistant.input, assistant.output) == (None, "hello")

    def test_unknown_session(self) -> None:
        service = SessionService()
        assert service.add_conversation_entry("nope", "a", "b") is False
        assert service.update_session_context("nope", {}) is False
        assert service.get_conversation_history("nope") == []

    def test_update_context_and_metadata_merge(self) -> None:
        service = SessionService()
        session = service.create_session("tenant-a", "thread-1")
        service.update_session_context(session.id, {"planner": {"a": 1}})
        service.update_session_context(session.id, {"tools": {"b": 2}})
        service.update_session_metadata(session.id, {"k": "v"})

        context = service.get_session_context(session.id)
        assert context.context_data == {"planner": {"a": 1}, "tools": {"b": 2}}
        assert context.metadata == {"k": "v"}


@pytest.mark.asyncio
class TestAutoCleanup:
    """Tests for the background sweep."""

    async def test_start_and_stop(self) -> None:
        service = SessionService(SessionConfig(cleanup_interval_seconds=0.01))
        service.start_auto_cleanup()
        service.start_auto_cleanup()
        await service.stop_auto_cleanup()
        await service.stop_auto_cleanup()

    async def test_disabled(self) -> None:
        service = SessionService(SessionConfig(enable_auto_cleanup=False))
        service.start_auto_cleanup()
        assert service._cleanup_task is None
