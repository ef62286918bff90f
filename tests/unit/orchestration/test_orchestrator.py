"""Tests for SDKOrchestrator."""

import asyncio
import json
from typing import Any

import pytest

from kodus_flow.adapters.llm import LLMMessage, LLMResponse
from kodus_flow.adapters.mcp import MCPToolRawWithServer
from kodus_flow.config.models.orchestrator import OrchestratorConfig, ToolEngineConfig
from kodus_flow.config.settings import Settings
from kodus_flow.errors import (
    AgentInitializationError,
    EngineError,
    ErrorCode,
    InvalidIdentityError,
    ValidationError,
)
from kodus_flow.orchestration.orchestrator import SDKOrchestrator
from tests.conftest import EchoLLM, ScriptedLLM


class SlowLLM:
    """Answers after a delay that tests can change."""

    def __init__(self, delay: float) -> None:
        self.delay = delay

    async def call(self, messages: list[LLMMessage], **kwargs: Any) -> LLMResponse:
        await asyncio.sleep(self.delay)
        return LLMResponse(content="slow answer")

    def get_provider(self) -> str:
        return "slow"


class FakeMCP:
    def __init__(self) -> None:
        self.connected = False
        self.executed: list[tuple[str, dict[str, Any], str | None]] = []

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def get_tools(self) -> list[MCPToolRawWithServer]:
        return [
            MCPToolRawWithServer(name="docs_search", description="Search docs", server_name="docs"),
            MCPToolRawWithServer(name="ping", server_name="net"),
        ]

    async def execute_tool(
        self, name: str, args: dict[str, Any], server_name: str | None = None
    ) -> Any:
        self.executed.append((name, args, server_name))
        return {"tool": name, "args": args}


def make_settings(**orchestrator: Any) -> Settings:
    return Settings(
        orchestrator=OrchestratorConfig(enable_observability=False, **orchestrator),
        tools=ToolEngineConfig(max_retries=1, retry_backoff_seconds=0),
    )


@pytest.fixture
async def orchestrator(echo_llm: EchoLLM):
    orchestrator = SDKOrchestrator(echo_llm, settings=make_settings())
    yield orchestrator
    await orchestrator.shutdown()


class TestConstruction:
    """Tests for orchestrator setup and agent registration."""

    def test_requires_llm(self) -> None:
        with pytest.raises(AgentInitializationError) as exc_info:
            SDKOrchestrator(None, settings=make_settings())
        assert exc_info.value.code == ErrorCode.ENGINE_AGENT_INITIALIZATION_FAILED

    async def test_create_agent_from_dict(self, orchestrator: SDKOrchestrator) -> None:
        definition = orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})

        assert definition.name == "Echo"
        assert definition.description == "echo"
        assert definition.planner == "react"
        assert definition.max_iterations == 10
        assert orchestrator.list_agents() == ["Echo"]
        assert orchestrator.get_agent_status("Echo")["type"] == "AgentEngine"

    async def test_empty_identity_rejected(self, orchestrator: SDKOrchestrator) -> None:
        with pytest.raises(InvalidIdentityError) as exc_info:
            orchestrator.create_agent({"name": "Nobody", "identity": {"style": "casual"}})
        assert exc_info.value.code == ErrorCode.AGENT_IDENTITY_INVALID
        assert orchestrator.list_agents() == []

    async def test_unknown_planner_rejected(self, orchestrator: SDKOrchestrator) -> None:
        with pytest.raises(ValidationError):
            orchestrator.create_agent(
                {"name": "Echo", "identity": {"role": "echo"}, "planner": "tree-of-thoughts"}
            )

    async def test_workflow_mode_uses_executor(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent(
            {"name": "Flow", "identity": {"goal": "run"}, "execution_mode": "workflow"}
        )
        status = orchestrator.get_agent_status("Flow")
        assert status["type"] == "AgentExecutor"
        assert status["is_paused"] is False

    async def test_last_registration_wins(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "first"}})
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "second"}})
        assert orchestrator.list_agents() == ["Echo"]
        assert orchestrator.get_agent_status("Missing") is None


class TestCallAgent:
    """Tests for call_agent envelopes."""

    async def test_echo_end_to_end(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})
        result = await orchestrator.call_agent("Echo", "hello", thread={"id": "t1"})

        assert result.success is True
        assert result.result == "hello"
        assert result.error is None
        assert result.context["thread_id"] == "t1"
        assert result.context["agent_name"] == "Echo"
        assert result.context["session_id"]
        assert result.context["execution_id"]
        assert result.metadata["status"] == "completed"
        assert orchestrator.registry.has_thread("t1")

    async def test_unknown_agent(self, orchestrator: SDKOrchestrator) -> None:
        result = await orchestrator.call_agent("X", "hello")

        assert result.success is False
        assert result.error == "Agent 'X' not found"
        assert result.error_code == "AGENT_NOT_FOUND"
        assert orchestrator.registry.thread_count == 0

    async def test_invalid_thread(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})
        result = await orchestrator.call_agent("Echo", "hello", thread={"id": "abc/123"})

        assert result.success is False
        assert result.error_code == "INVALID_THREAD_ID"
        assert orchestrator.registry.thread_count == 0

    async def test_auto_thread(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})
        result = await orchestrator.call_agent("Echo", "hello")
        assert result.success is True
        assert result.context["thread_id"].startswith("thread-call_")

    async def test_session_id_resolves_thread(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})
        first = await orchestrator.call_agent("Echo", "one", thread={"id": "t1"})
        second = await orchestrator.call_agent(
            "Echo", "two", session_id=first.context["session_id"]
        )

        assert second.context["thread_id"] == "t1"
        assert second.context["session_id"] == first.context["session_id"]
        history = orchestrator.session_service.get_conversation_history(
            first.context["session_id"]
        )
        assert [entry.input for entry in history] == ["one", "two"]

    async def test_structured_input_and_user_context(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})
        result = await orchestrator.call_agent(
            "Echo",
            {"q": "hi"},
            thread={"id": "t1"},
            user_context={"id": "u1", "preferences": {"lang": "en"}},
        )
        assert result.result == json.dumps({"q": "hi"})

    async def test_correlation_id_propagates(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})
        result = await orchestrator.call_agent(
            "Echo", "hello", thread={"id": "t1"}, correlation_id="corr-fixed"
        )
        assert result.context["correlation_id"] == "corr-fixed"

    async def test_unsuccessful_run_reports_status(self) -> None:
        reply = json.dumps({"action": {"type": "tool_call", "tool_name": "missing"}})
        orchestrator = SDKOrchestrator(ScriptedLLM([reply]), settings=make_settings())
        orchestrator.create_agent(
            {"name": "Looper", "identity": {"role": "loop"}, "max_iterations": 2}
        )
        result = await orchestrator.call_agent("Looper", "go", thread={"id": "t1"})
        await orchestrator.shutdown()

        assert result.success is False
        assert result.metadata["status"] == "stagnated"
        assert result.error == "Tool 'missing' not found"

    async def test_timeout(self) -> None:
        llm = SlowLLM(delay=1.0)
        orchestrator = SDKOrchestrator(llm, settings=make_settings())
        orchestrator.create_agent(
            {"name": "Slow", "identity": {"role": "slow"}, "timeout_seconds": 0.05}
        )

        result = await orchestrator.call_agent("Slow", "hello", thread={"id": "t1"})
        assert result.success is False
        assert result.error_code == "EXECUTION_TIMEOUT"
        assert result.error == "Agent execution timed out after 0.05s"

        runtime = await orchestrator.registry.get_by_thread("t1")
        assert not runtime.is_running

        llm.delay = 0
        retry = await orchestrator.call_agent("Slow", "hello", thread={"id": "t1"})
        assert retry.success is True
        await orchestrator.shutdown()

    async def test_concurrent_call_on_same_thread(self) -> None:
        orchestrator = SDKOrchestrator(SlowLLM(delay=0.05), settings=make_settings())
        orchestrator.create_agent({"name": "Slow", "identity": {"role": "slow"}})

        first, second = await asyncio.gather(
            orchestrator.call_agent("Slow", "a", thread={"id": "t1"}),
            orchestrator.call_agent("Slow", "b", thread={"id": "t1"}),
        )
        await orchestrator.shutdown()

        assert first.success is True
        assert second.success is False
        assert second.error_code == "EXECUTION_ALREADY_RUNNING"

    async def test_paused_workflow_agent(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent(
            {"name": "Flow", "identity": {"goal": "run"}, "execution_mode": "workflow"}
        )
        orchestrator._agents["Flow"].pause("maintenance")

        result = await orchestrator.call_agent("Flow", "hello", thread={"id": "t1"})
        assert result.success is False
        assert result.error_code == "AGENT_ERROR"
        assert result.error == "Agent execution is paused: maintenance"


class TestTools:
    """Tests for tool registration and call_tool."""

    async def test_create_and_call_tool(self, orchestrator: SDKOrchestrator) -> None:
        async def add(input: dict[str, Any]) -> int:
            return input["a"] + input["b"]

        orchestrator.create_tool("add", "Add two numbers", add, categories=["math"])
        result = await orchestrator.call_tool("add", {"a": 2, "b": 2})

        assert result.success is True
        assert result.result == 4
        assert result.context["tool_name"] == "add"
        assert orchestrator.get_registered_tools() == [
            {"name": "add", "description": "Add two numbers", "categories": ["math"]}
        ]

    async def test_unknown_tool(self, orchestrator: SDKOrchestrator) -> None:
        result = await orchestrator.call_tool("missing")
        assert result.success is False
        assert result.error_code == "TOOL_NOT_FOUND"
        assert result.error == "Tool 'missing' not found"

    async def test_tool_error_is_enveloped(self, orchestrator: SDKOrchestrator) -> None:
        async def broken(input: dict[str, Any]) -> None:
            raise KeyError("nope")

        orchestrator.create_tool("broken", "Always fails", broken)
        result = await orchestrator.call_tool("broken")
        assert result.success is False
        assert result.error_code == "KeyError"

    async def test_tool_timeout(self) -> None:
        orchestrator = SDKOrchestrator(
            EchoLLM(), settings=make_settings(default_timeout_seconds=0.05)
        )

        async def slow(input: dict[str, Any]) -> None:
            await asyncio.sleep(1)

        orchestrator.create_tool("slow", "Sleeps", slow)
        result = await orchestrator.call_tool("slow")
        assert result.success is False
        assert result.error_code == "EXECUTION_TIMEOUT"

    async def test_agent_sees_registered_tools(self, orchestrator: SDKOrchestrator) -> None:
        async def add(input: dict[str, Any]) -> int:
            return 0

        orchestrator.create_tool("add", "Add two numbers", add)
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})
        await orchestrator.call_agent("Echo", "hello", thread={"id": "t1"})

        llm: EchoLLM = orchestrator._llm
        assert "- add: Add two numbers" in llm.calls[0][0].content


class TestMCP:
    """Tests for MCP integration."""

    async def test_without_adapter(self, orchestrator: SDKOrchestrator) -> None:
        with pytest.raises(EngineError) as exc_info:
            await orchestrator.register_mcp_tools()
        assert exc_info.value.code == ErrorCode.MCP_ERROR

    async def test_register_and_call_mcp_tools(self, echo_llm: EchoLLM) -> None:
        mcp = FakeMCP()
        orchestrator = SDKOrchestrator(echo_llm, mcp_adapter=mcp, settings=make_settings())
        await orchestrator.connect_mcp()
        assert mcp.connected

        assert await orchestrator.register_mcp_tools() == 2
        tools = {tool["name"]: tool for tool in orchestrator.get_registered_tools()}
        assert tools["docs_search"]["categories"] == ["mcp", "docs"]
        assert tools["ping"]["description"] == "MCP tool ping"

        result = await orchestrator.call_tool("docs_search", {"q": "x"})
        assert result.result == {"tool": "docs_search", "args": {"q": "x"}}
        assert mcp.executed == [("docs_search", {"q": "x"}, "docs")]

        await orchestrator.disconnect_mcp()
        assert not mcp.connected


class TestIntrospection:
    """Tests for stats and health."""

    async def test_stats(self, orchestrator: SDKOrchestrator) -> None:
        orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})
        await orchestrator.call_agent("Echo", "hello", thread={"id": "t1"})

        stats = orchestrator.get_stats()
        assert stats["total_agents"] == 1
        assert stats["agent_names"] == ["Echo"]
        assert stats["llm_provider"] == "echo"
        assert stats["runtime_threads"] == 1
        assert stats["tenant_id"] == "default-tenant"

    async def test_health(self, orchestrator: SDKOrchestrator) -> None:
        health = await orchestrator.health()
        assert health["status"] == "healthy"
        assert health["registry"]["thread_count"] == 0
