"""ContextBuilder: produces one AgentContext per agent invocation.

The builder composes the shared session and memory services with a fresh
working-state service for every invocation. The context it returns holds an
ExecutionLifecycle capability, never the builder or a thread runtime, and its
cleanup() releases only the per-invocation state.
"""

from typing import TYPE_CHECKING, Any

from kodus_flow.config.models.context import MemoryConfig, SessionConfig, StateConfig
from kodus_flow.context.accessors import ConversationAccess, MemoryAccess, WorkingState
from kodus_flow.context.models import AgentContext, SystemContext, Thread, UserContext
from kodus_flow.context.session import Session, SessionService
from kodus_flow.context.state import ContextStateService
from kodus_flow.errors import KodusFlowError
from kodus_flow.memory.manager import MemoryManager
from kodus_flow.observability.logging import bind_execution_context, get_logger
from kodus_flow.runtime.lifecycle import ExecutionIdentifiers, SimpleExecutionRuntime
from kodus_flow.utils.ids import IdGenerator, validate_thread_id

if TYPE_CHECKING:
    from kodus_flow.agents.models import AgentIdentity
    from kodus_flow.tools.engine import ToolEngine

logger = get_logger(__name__)

DEFAULT_THREAD_ID = "default"
DEFAULT_TENANT_ID = "default"


class ContextBuilder:
    """Factory for per-invocation agent contexts."""

    def __init__(
        self,
        memory_manager: MemoryManager | None = None,
        session_service: SessionService | None = None,
        session_config: SessionConfig | None = None,
        state_config: StateConfig | None = None,
        memory_config: MemoryConfig | None = None,
    ) -> None:
        self._memory = memory_manager or MemoryManager(memory_config)
        self._sessions = session_service or SessionService(session_config)
        self._state_config = state_config or StateConfig()
        self._tool_engine: "ToolEngine | None" = None

        logger.info(
            "context_builder_initialized",
            max_namespaces=self._state_config.max_namespaces,
            max_namespace_size=self._state_config.max_namespace_size,
        )

    @property
    def memory_manager(self) -> MemoryManager:
        return self._memory

    @property
    def session_service(self) -> SessionService:
        return self._sessions

    def set_tool_engine(self, tool_engine: "ToolEngine") -> None:
        self._tool_engine = tool_engine

    def get_services(self) -> dict[str, Any]:
        return {
            "memory_manager": self._memory,
            "session_service": self._sessions,
            "tool_engine": self._tool_engine,
        }

    async def create_agent_context(
        self,
        agent_name: str,
        thread: Thread | None = None,
        tenant_id: str | None = None,
        correlation_id: str | None = None,
        user_context: UserContext | None = None,
        agent_identity: "AgentIdentity | None" = None,
        execution_options: dict[str, Any] | None = None,
    ) -> AgentContext:
        """Resolve the thread's session and build a fresh context around it.

        Raises:
            InvalidThreadIdError: If the thread id has characters outside [A-Za-z0-9_-]
        """
        await self._memory.initialize()

        thread = thread or Thread(id=DEFAULT_THREAD_ID)
        validate_thread_id(thread.id)
        tenant_id = tenant_id or DEFAULT_TENANT_ID
        correlation_id = correlation_id or IdGenerator.correlation_id()

        session = self._sessions.find_session_by_thread(thread.id, tenant_id)
        if session is None:
            session = self._sessions.create_session(tenant_id, thread.id, {})
        else:
            session.touch()
            logger.debug("session_reused", session_id=session.id, thread_id=thread.id)

        invocation_id = IdGenerator.invocation_id()
        working_state = ContextStateService(owner_id=session.id, config=self._state_config)
        await self._rehydrate(working_state, session)

        lifecycle = SimpleExecutionRuntime(
            ExecutionIdentifiers(
                session_id=session.id,
                tenant_id=tenant_id,
                thread_id=thread.id,
            )
        )

        async def release() -> None:
            await working_state.clear()
            await lifecycle.cleanup()

        context = AgentContext(
            agent_name=agent_name,
            invocation_id=invocation_id,
            tenant_id=tenant_id,
            correlation_id=correlation_id,
            session_id=session.id,
            thread=thread,
            user=user_context or UserContext(),
            system=SystemContext(
                tenant_id=tenant_id,
                correlation_id=correlation_id,
                session_id=session.id,
                thread_id=thread.id,
                execution_id=lifecycle.execution_id,
                conversation_history=list(session.conversation_history),
            ),
            state=WorkingState(working_state, self._sessions, session.id),
            conversation=ConversationAccess(self._sessions, session.id),
            memory=MemoryAccess(self._memory, session.id, tenant_id),
            lifecycle=lifecycle,
            agent_identity=agent_identity,
            available_tools=self._tool_engine.get_available_tools() if self._tool_engine else [],
            execution_options=dict(execution_options or {}),
            on_cleanup=release,
        )

        bind_execution_context(
            correlation_id=correlation_id,
            session_id=session.id,
            tenant_id=tenant_id,
            invocation_id=invocation_id,
        )
        logger.info(
            "agent_context_created",
            agent_name=agent_name,
            session_id=session.id,
            thread_id=thread.id,
            invocation_id=invocation_id,
        )
        return context

    async def health(self) -> dict[str, Any]:
        try:
            memory_stats = await self._memory.get_stats()
            session_stats = self._sessions.get_session_stats()
        except Exception as e:
            logger.warning("context_builder_health_failed", error=str(e))
            return {"status": "unhealthy", "services": {"error": str(e)}}
        return {
            "status": "healthy",
            "services": {"memory": memory_stats, "session": session_stats},
        }

    async def _rehydrate(self, working_state: ContextStateService, session: Session) -> None:
        """Load persisted namespaces from the session into working memory."""
        try:
            for namespace, values in session.context_data.items():
                if not isinstance(values, dict):
                    continue
                for key, value in values.items():
                    await working_state.set(namespace, key, value)
        except KodusFlowError as e:
            logger.warning(
                "working_state_rehydrate_failed",
                session_id=session.id,
                error=str(e),
            )
        working_state.mark_saved()
