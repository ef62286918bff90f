"""Tests for ContextBuilder and the context accessors."""

import pytest

from kodus_flow.agents.models import AgentIdentity
from kodus_flow.config.models.context import StateConfig
from kodus_flow.context.builder import ContextBuilder
from kodus_flow.context.models import Thread, UserContext
from kodus_flow.context.session import SessionService
from kodus_flow.errors import ErrorCode, InvalidThreadIdError
from kodus_flow.memory.manager import MemoryManager
from kodus_flow.memory.models import MemoryQuery
from kodus_flow.planning.status import Status


@pytest.fixture
def builder() -> ContextBuilder:
    return ContextBuilder(memory_manager=MemoryManager(), session_service=SessionService())


@pytest.mark.asyncio
class TestCreateAgentContext:
    """Tests for create_agent_context."""

    async def test_defaults(self, builder: ContextBuilder) -> None:
        context = await builder.create_agent_context("Echo")

        assert context.agent_name == "Echo"
        assert context.thread_id == "default"
        assert context.tenant_id == "default"
        assert context.correlation_id.startswith("corr_")
        assert context.user == UserContext()
        assert context.system.status == Status.PENDING
        assert context.system.execution_id == context.lifecycle.execution_id
        assert not context.lifecycle.is_running

    async def test_session_reused_per_thread(self, builder: ContextBuilder) -> None:
        first = await builder.create_agent_context("Echo", thread=Thread(id="t1"))
        second = await builder.create_agent_context("Echo", thread=Thread(id="t1"))
        other = await builder.create_agent_context("Echo", thread=Thread(id="t2"))

        assert first.session_id == second.session_id
        assert other.session_id != first.session_id
        assert first.invocation_id != second.invocation_id
        assert first.lifecycle is not second.lifecycle

    async def test_tenant_scopes_sessions(self, builder: ContextBuilder) -> None:
        a = await builder.create_agent_context("Echo", thread=Thread(id="t1"), tenant_id="a")
        b = await builder.create_agent_context("Echo", thread=Thread(id="t1"), tenant_id="b")
        assert a.session_id != b.session_id

    async def test_thread_model_rejects_invalid_id(self) -> None:
        with pytest.raises(InvalidThreadIdError) as exc_info:
            Thread(id="abc/123 ../x")
        assert exc_info.value.code == ErrorCode.INVALID_THREAD_ID

    async def test_invalid_thread_creates_no_session(self) -> None:
        sessions = SessionService()
        builder = ContextBuilder(memory_manager=MemoryManager(), session_service=sessions)
        unchecked = Thread.model_construct(id="abc/123 ../x", metadata={})

        with pytest.raises(InvalidThreadIdError):
            await builder.create_agent_context("Echo", thread=unchecked)
        assert sessions.find_session_by_thread("abc/123 ../x", "default") is None

    async def test_identity_and_options(self, builder: ContextBuilder) -> None:
        identity = AgentIdentity(role="reviewer")
        context = await builder.create_agent_context(
            "Reviewer",
            agent_identity=identity,
            execution_options={"max_iterations": 3},
            user_context=UserContext(id="u1", preferences={"lang": "en"}),
        )
        assert context.agent_identity is identity
        assert context.execution_options == {"max_iterations": 3}
        assert context.user.preferences == {"lang": "en"}

    async def test_persisted_state_is_rehydrated(self, builder: ContextBuilder) -> None:
        first = await builder.create_agent_context("Echo", thread=Thread(id="t1"))
        await first.state.set("planner", "history", ["step"])
        assert first.state.has_changes()
        assert await first.state.persist("planner") is True
        assert not first.state.has_changes()
        await first.cleanup()

        second = await builder.create_agent_context("Echo", thread=Thread(id="t1"))
        assert await second.state.get("planner", "history") == ["step"]
        assert not second.state.has_changes()

    async def test_rehydrate_respects_caps(self) -> None:
        """State beyond the caps is skipped with a warning, not raised."""
        sessions = SessionService()
        builder = ContextBuilder(
            memory_manager=MemoryManager(),
            session_service=sessions,
            state_config=StateConfig(max_namespaces=1),
        )
        session = sessions.create_session("default", "t1")
        sessions.update_session_context(session.id, {"a": {"k": 1}, "b": {"k": 2}})

        context = await builder.create_agent_context("Echo", thread=Thread(id="t1"))
        assert await context.state.get("a", "k") == 1
        assert await context.state.get("b", "k") is None

    async def test_cleanup_releases_only_invocation_state(self, builder: ContextBuilder) -> None:
        context = await builder.create_agent_context("Echo", thread=Thread(id="t1"))
        await context.state.set("agent", "scratch", 1)
        await context.conversation.add_entry("hi", "hello", "Echo")
        await context.memory.store_execution_pattern("simple", "final_answer", "ok", {})
        await context.lifecycle.start_execution("Echo")

        await context.cleanup()
        await context.cleanup()

        assert await context.state.get("agent", "scratch") is None
        assert not context.lifecycle.is_running
        assert len(await context.conversation.get_history()) == 1
        assert len(await builder.memory_manager.query(MemoryQuery())) == 1
        assert builder.session_service.get_session(context.session_id) is not None

    async def test_cancel_signal(self, builder: ContextBuilder) -> None:
        context = await builder.create_agent_context("Echo")
        assert not context.cancelled
        context.cancel()
        assert context.cancelled


@pytest.mark.asyncio
class TestAccessors:
    """Tests for the conversation and memory accessors."""

    async def test_memory_access_scoped_to_tenant(self, builder: ContextBuilder) -> None:
        a = await builder.create_agent_context("Echo", thread=Thread(id="t1"), tenant_id="a")
        b = await builder.create_agent_context("Echo", thread=Thread(id="t1"), tenant_id="b")

        await a.memory.store_tool_usage_pattern("search", {"q": "x"}, "found", True, 0.2)
        await b.memory.store_execution_pattern("simple", "final_answer", "ok", {})

        items = await a.memory.query("tool_usage_pattern")
        assert len(items) == 1
        assert items[0].value["tool_name"] == "search"
        assert items[0].session_id == a.session_id
        assert await a.memory.query("execution_pattern") == []

    async def test_conversation_messages(self, builder: ContextBuilder) -> None:
        context = await builder.create_agent_context("Echo")
        await context.conversation.add_message("user", "hello")
        await context.conversation.update_metadata({"topic": "greeting"})

        history = await context.conversation.get_history()
        assert history[0].input == "hello"
        session = builder.session_service.get_session(context.session_id)
        assert session.metadata == {"topic": "greeting"}


@pytest.mark.asyncio
class TestBuilderHealth:
    """Tests for health reporting."""

    async def test_healthy(self, builder: ContextBuilder) -> None:
        health = await builder.health()
        assert health["status"] == "healthy"
        assert health["services"]["session"]["total"] == 0

    async def test_services(self, builder: ContextBuilder) -> None:
        services = builder.get_services()
        assert services["tool_engine"] is None
        assert services["memory_manager"] is builder.memory_manager
