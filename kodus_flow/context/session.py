"""Session service: conversation history and persisted context per thread.

Sessions are keyed by id and discoverable by (thread_id, tenant_id). Each
session keeps an append-only, length-capped conversation history and a
`context_data` mapping that working memory is persisted into.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from kodus_flow.config.models.context import SessionConfig
from kodus_flow.observability.logging import get_logger
from kodus_flow.observability.metrics import ACTIVE_SESSIONS
from kodus_flow.utils.ids import IdGenerator

logger = get_logger(__name__)

MessageRole = Literal["user", "assistant", "system"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionStatus(str, Enum):
    """Lifecycle status of a session."""

    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRED = "expired"
    CLOSED = "closed"


class ConversationEntry(BaseModel):
    """One input/output exchange recorded on a session."""

    timestamp: datetime = Field(default_factory=_utcnow)
    input: Any = None
    output: Any = None
    agent_name: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Session(BaseModel):
    """A conversation scoped to one thread within one tenant."""

    id: str = Field(default_factory=IdGenerator.session_id)
    thread_id: str
    tenant_id: str
    created_at: datetime = Field(default_factory=_utcnow)
    last_activity: datetime = Field(default_factory=_utcnow)
    status: SessionStatus = SessionStatus.ACTIVE
    metadata: dict[str, Any] = Field(default_factory=dict)
    context_data: dict[str, Any] = Field(default_factory=dict)
    conversation_history: list[ConversationEntry] = Field(default_factory=list)

    def touch(self) -> None:
        self.last_activity = _utcnow()


class SessionContext(BaseModel):
    """Read view of a session handed to context consumers."""

    id: str
    thread_id: str
    tenant_id: str
    conversation_history: list[ConversationEntry]
    metadata: dict[str, Any]
    context_data: dict[str, Any]


class SessionService:
    """In-memory session store with expiry and LRU capacity eviction."""

    def __init__(self, config: SessionConfig | None = None) -> None:
        self._config = config or SessionConfig()
        self._sessions: dict[str, Session] = {}
        self._cleanup_task: asyncio.Task | None = None
        logger.info(
            "session_service_initialized",
            max_sessions=self._config.max_sessions,
            session_timeout_seconds=self._config.session_timeout_seconds,
        )

    @property
    def config(self) -> SessionConfig:
        return self._config

    def create_session(
        self,
        tenant_id: str,
        thread_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> Session:
        """Create and register a new active session."""
        session = Session(thread_id=thread_id, tenant_id=tenant_id, metadata=metadata or {})
        self._sessions[session.id] = session
        self._enforce_max_sessions()
        ACTIVE_SESSIONS.labels(tenant_id=tenant_id).inc()

        logger.info(
            "session_created",
            session_id=session.id,
            thread_id=thread_id,
            tenant_id=tenant_id,
            total_sessions=len(self._sessions),
        )
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session, marking it expired if its timeout has passed.

        Expired sessions are still returned so callers can inspect them.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self._is_expired(session):
            self._mark_expired(session)
        return session

    def find_session_by_thread(
        self, thread_id: str, tenant_id: str | None = None
    ) -> Session | None:
        """First active, unexpired session for the thread (and tenant, if given)."""
        for session in self._sessions.values():
            if (
                session.thread_id == thread_id
                and (tenant_id is None or session.tenant_id == tenant_id)
                and session.status == SessionStatus.ACTIVE
                and not self._is_expired(session)
            ):
                return session
        return None

    def find_sessions(
        self,
        thread_id: str | None = None,
        tenant_id: str | None = None,
        status: SessionStatus | None = None,
        active_since: datetime | None = None,
    ) -> list[Session]:
        return [
            session
            for session in self._sessions.values()
            if (thread_id is None or session.thread_id == thread_id)
            and (tenant_id is None or session.tenant_id == tenant_id)
            and (status is None or session.status == status)
            and (active_since is None or session.last_activity >= active_since)
        ]

    def get_session_context(self, session_id: str) -> SessionContext | None:
        session = self.get_session(session_id)
        if session is None or session.status == SessionStatus.EXPIRED:
            return None
        return SessionContext(
            id=session.id,
            thread_id=session.thread_id,
            tenant_id=session.tenant_id,
            conversation_history=list(session.conversation_history),
            metadata=dict(session.metadata),
            context_data=dict(session.context_data),
        )

    def add_conversation_entry(
        self,
        session_id: str,
        input: Any,
        output: Any,
        agent_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Append an exchange, dropping the oldest beyond the history cap."""
        session = self.get_session(session_id)
        if session is None:
            return False

        session.conversation_history.append(
            ConversationEntry(
                input=input,
                output=output,
                agent_name=agent_name,
                metadata=metadata or {},
            )
        )
        overflow = len(session.conversation_history) - self._config.max_conversation_history
        if overflow > 0:
            del session.conversation_history[:overflow]
        session.touch()

        logger.debug(
            "conversation_entry_added",
            session_id=session_id,
            agent_name=agent_name,
            history_length=len(session.conversation_history),
        )
        return True

    def add_message(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Record a single chat message as a conversation entry.

        User messages land in `input`, assistant/system messages in `output`.
        """
        entry_metadata = {"role": role, **(metadata or {})}
        if role == "user":
            return self.add_conversation_entry(session_id, content, None, metadata=entry_metadata)
        return self.add_conversation_entry(session_id, None, content, metadata=entry_metadata)

    def get_conversation_history(self, session_id: str) -> list[ConversationEntry]:
        session = self.get_session(session_id)
        return list(session.conversation_history) if session else []

    def update_session_metadata(self, session_id: str, updates: dict[str, Any]) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        session.metadata = {**session.metadata, **updates}
        session.touch()
        return True

    def update_session_context(self, session_id: str, updates: dict[str, Any]) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        session.context_data = {**session.context_data, **updates}
        session.touch()
        return True

    def pause_session(self, session_id: str) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        if session.status == SessionStatus.ACTIVE:
            ACTIVE_SESSIONS.labels(tenant_id=session.tenant_id).dec()
        session.status = SessionStatus.PAUSED
        session.touch()
        logger.info("session_paused", session_id=session_id)
        return True

    def resume_session(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        if session.status != SessionStatus.ACTIVE:
            ACTIVE_SESSIONS.labels(tenant_id=session.tenant_id).inc()
        session.status = SessionStatus.ACTIVE
        session.touch()
        logger.info("session_resumed", session_id=session_id)
        return True

    def close_session(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        if session.status == SessionStatus.ACTIVE:
            ACTIVE_SESSIONS.labels(tenant_id=session.tenant_id).dec()
        session.status = SessionStatus.CLOSED
        session.touch()
        logger.info("session_closed", session_id=session_id)
        return True

    def get_session_stats(self) -> dict[str, Any]:
        """Counts per status and the mean age of non-closed sessions."""
        now = _utcnow()
        stats: dict[str, Any] = {"total": len(self._sessions)}
        for status in SessionStatus:
            stats[status.value] = 0

        durations: list[float] = []
        for session in self._sessions.values():
            stats[session.status.value] += 1
            if session.status != SessionStatus.CLOSED:
                durations.append((now - session.created_at).total_seconds())

        stats["average_session_duration"] = sum(durations) / len(durations) if durations else 0.0
        return stats

    def cleanup_expired_sessions(self) -> int:
        """Mark timed-out sessions expired. Returns how many were marked."""
        cleaned = 0
        for session in self._sessions.values():
            if session.status != SessionStatus.EXPIRED and self._is_expired(session):
                self._mark_expired(session)
                cleaned += 1
        if cleaned:
            logger.info("expired_sessions_cleaned", cleaned_count=cleaned)
        return cleaned

    def start_auto_cleanup(self) -> None:
        """Start the background expiry sweep (requires a running loop)."""
        if not self._config.enable_auto_cleanup or self._cleanup_task is not None:
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            "session_auto_cleanup_started",
            interval_seconds=self._config.cleanup_interval_seconds,
        )

    async def stop_auto_cleanup(self) -> None:
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        try:
            await self._cleanup_task
        except asyncio.CancelledError:
            pass
        self._cleanup_task = None
        logger.info("session_auto_cleanup_stopped")

    async def cleanup(self) -> None:
        """Stop the sweep and drop every session."""
        await self.stop_auto_cleanup()
        self._sessions.clear()
        logger.info("session_service_cleaned")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.cleanup_interval_seconds)
            try:
                self.cleanup_expired_sessions()
            except Exception as e:
                logger.error("session_cleanup_error", error=str(e))

    def _is_expired(self, session: Session) -> bool:
        if session.status == SessionStatus.CLOSED:
            return False
        if session.status == SessionStatus.EXPIRED:
            return True
        idle = _utcnow() - session.last_activity
        return idle > timedelta(seconds=self._config.session_timeout_seconds)

    def _mark_expired(self, session: Session) -> None:
        if session.status == SessionStatus.ACTIVE:
            ACTIVE_SESSIONS.labels(tenant_id=session.tenant_id).dec()
        session.status = SessionStatus.EXPIRED

    def _enforce_max_sessions(self) -> None:
        overflow = len(self._sessions) - self._config.max_sessions
        if overflow <= 0:
            return
        by_activity = sorted(self._sessions.values(), key=lambda s: s.last_activity)
        for session in by_activity[:overflow]:
            if session.status == SessionStatus.ACTIVE:
                ACTIVE_SESSIONS.labels(tenant_id=session.tenant_id).dec()
            del self._sessions[session.id]
        logger.warning(
            "max_sessions_enforced",
            removed=overflow,
            remaining=len(self._sessions),
        )
