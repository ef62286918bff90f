"""Narrow views over session, state and memory services for agent code."""

from typing import Any

from kodus_flow.context.session import ConversationEntry, MessageRole, SessionService
from kodus_flow.context.state import ContextStateService
from kodus_flow.memory.manager import MemoryManager
from kodus_flow.memory.models import MemoryItem, MemoryQuery


class WorkingState:
    """Per-invocation working memory with explicit persistence to the session."""

    def __init__(
        self,
        state: ContextStateService,
        session_service: SessionService,
        session_id: str,
    ) -> None:
        self._state = state
        self._sessions = session_service
        self._session_id = session_id

    async def get(self, namespace: str, key: str, default: Any = None) -> Any:
        return await self._state.get(namespace, key, default)

    async def set(self, namespace: str, key: str, value: Any) -> None:
        await self._state.set(namespace, key, value)

    async def clear(self, namespace: str | None = None) -> None:
        await self._state.clear(namespace)

    def get_namespace(self, namespace: str) -> dict[str, Any] | None:
        return self._state.get_namespace(namespace)

    async def persist(self, namespace: str | None = None) -> bool:
        """Copy working memory into the session's context data.

        Nothing is written automatically; callers decide what survives the
        invocation.
        """
        if namespace is not None:
            data = self._state.get_namespace(namespace)
            if data is None:
                return False
            persisted = self._sessions.update_session_context(self._session_id, {namespace: data})
        else:
            persisted = self._sessions.update_session_context(
                self._session_id, self._state.get_all_namespaces()
            )
        if persisted:
            self._state.mark_saved()
        return persisted

    def has_changes(self) -> bool:
        return self._state.has_unsaved_changes()


class ConversationAccess:
    """Conversation history of the invocation's session."""

    def __init__(self, session_service: SessionService, session_id: str) -> None:
        self._sessions = session_service
        self._session_id = session_id

    async def add_message(
        self,
        role: MessageRole,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        return self._sessions.add_message(self._session_id, role, content, metadata)

    async def add_entry(
        self,
        input: Any,
        output: Any,
        agent_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        return self._sessions.add_conversation_entry(
            self._session_id, input, output, agent_name, metadata
        )

    async def get_history(self) -> list[ConversationEntry]:
        return self._sessions.get_conversation_history(self._session_id)

    async def update_metadata(self, metadata: dict[str, Any]) -> bool:
        return self._sessions.update_session_metadata(self._session_id, metadata)


class MemoryAccess:
    """Long-term memory helpers scoped to a session and tenant."""

    def __init__(self, memory_manager: MemoryManager, session_id: str, tenant_id: str) -> None:
        self._memory = memory_manager
        self._session_id = session_id
        self._tenant_id = tenant_id

    async def store_tool_usage_pattern(
        self,
        tool_name: str,
        input: Any,
        output: Any,
        success: bool,
        duration: float,
    ) -> MemoryItem:
        return await self._memory.store(
            {
                "tool_name": tool_name,
                "input": input,
                "output": output,
                "success": success,
                "duration": duration,
            },
            type="tool_usage_pattern",
            key=tool_name,
            session_id=self._session_id,
            tenant_id=self._tenant_id,
        )

    async def store_execution_pattern(
        self,
        pattern_type: str,
        action: Any,
        result: Any,
        context: Any,
    ) -> MemoryItem:
        return await self._memory.store(
            {
                "pattern_type": pattern_type,
                "action": action,
                "result": result,
                "context": context,
            },
            type="execution_pattern",
            key=pattern_type,
            session_id=self._session_id,
            tenant_id=self._tenant_id,
        )

    async def query(self, type: str | None = None, limit: int | None = None) -> list[MemoryItem]:
        """Items for this tenant, newest first."""
        return await self._memory.query(
            MemoryQuery(type=type, tenant_id=self._tenant_id, limit=limit)
        )
