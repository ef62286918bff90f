"""Tests for ToolEngine."""

import asyncio
from typing import Any

import pytest

from kodus_flow.config.models.orchestrator import ToolEngineConfig
from kodus_flow.errors import ErrorCode, ExecutionTimeoutError, ToolNotFoundError
from kodus_flow.kernel.handler import KernelHandler
from kodus_flow.tools.engine import ToolEngine
from kodus_flow.tools.models import ToolCall, ToolDefinition


def make_tool(name: str, execute, **kwargs: Any) -> ToolDefinition:
    kwargs.setdefault("description", f"{name} tool")
    return ToolDefinition(name=name, execute=execute, **kwargs)


async def add(input: dict[str, Any]) -> int:
    return input["a"] + input["b"]


class Flaky:
    """Fails a fixed number of times before succeeding."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self, input: dict[str, Any]) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"failure {self.calls}")
        return "ok"


@pytest.fixture
def engine() -> ToolEngine:
    return ToolEngine(ToolEngineConfig(max_retries=3, retry_backoff_seconds=0))


class TestRegistration:
    """Tests for tool registration."""

    def test_register_and_list(self, engine: ToolEngine) -> None:
        engine.register_tool(make_tool("add", add, categories=["math"]))
        assert engine.has_tool("add")
        assert engine.get_tool("add").categories == ["math"]
        assert [tool.name for tool in engine.list_tools()] == ["add"]

    def test_planner_info_hides_callable(self, engine: ToolEngine) -> None:
        engine.register_tool(make_tool("add", add))
        info = engine.get_available_tools()[0]
        assert info["name"] == "add"
        assert info["input_schema"] == {"type": "object", "properties": {}}
        assert "execute" not in info

    def test_last_registration_wins(self, engine: ToolEngine) -> None:
        engine.register_tool(make_tool("add", add))
        engine.register_tool(make_tool("add", add, description="replacement"))
        assert engine.get_tool("add").description == "replacement"
        assert len(engine.list_tools()) == 1


class TestExecuteCall:
    """Tests for execute_call retries and timeouts."""

    async def test_success(self, engine: ToolEngine) -> None:
        engine.register_tool(make_tool("add", add))
        assert await engine.execute_call("add", {"a": 2, "b": 3}) == 5

    async def test_replaced_tool_is_executed(self, engine: ToolEngine) -> None:
        async def subtract(input: dict[str, Any]) -> int:
            return input["a"] - input["b"]

        engine.register_tool(make_tool("add", add))
        engine.register_tool(make_tool("add", subtract, description="replacement"))
        assert await engine.execute_call("add", {"a": 2, "b": 3}) == -1

    async def test_not_found(self, engine: ToolEngine) -> None:
        with pytest.raises(ToolNotFoundError) as exc_info:
            await engine.execute_call("missing")
        assert exc_info.value.code == ErrorCode.TOOL_NOT_FOUND
        assert str(exc_info.value) == "Tool 'missing' not found"

    async def test_retries_until_success(self, engine: ToolEngine) -> None:
        flaky = Flaky(failures=2)
        engine.register_tool(make_tool("flaky", flaky))
        assert await engine.execute_call("flaky") == "ok"
        assert flaky.calls == 3

    async def test_last_error_reraised(self, engine: ToolEngine) -> None:
        flaky = Flaky(failures=5)
        engine.register_tool(make_tool("flaky", flaky))
        with pytest.raises(RuntimeError, match="failure 3"):
            await engine.execute_call("flaky")
        assert flaky.calls == 3

    async def test_timeout(self) -> None:
        engine = ToolEngine(ToolEngineConfig(max_retries=1, retry_backoff_seconds=0))

        async def slow(input: dict[str, Any]) -> None:
            await asyncio.sleep(1)

        engine.register_tool(make_tool("slow", slow))
        with pytest.raises(ExecutionTimeoutError) as exc_info:
            await engine.execute_call("slow", timeout_seconds=0.01)
        assert exc_info.value.code == ErrorCode.EXECUTION_TIMEOUT
        assert exc_info.value.timeout_seconds == 0.01

    async def test_emits_kernel_events(self) -> None:
        kernel = KernelHandler()
        engine = ToolEngine(ToolEngineConfig(max_retries=1), kernel_handler=kernel)
        engine.register_tool(make_tool("add", add))
        await engine.execute_call("add", {"a": 1, "b": 1})

        types = [event.type for event in kernel.get_emitted_events()]
        assert types == ["tool.execution.start", "tool.execution.success"]


class TestBatches:
    """Tests for parallel and sequential batches."""

    async def test_parallel_keeps_order_and_isolates_errors(self, engine: ToolEngine) -> None:
        engine.register_tool(make_tool("add", add))
        calls = [
            ToolCall(id="c1", tool_name="add", input={"a": 1, "b": 2}),
            ToolCall(id="c2", tool_name="missing"),
            ToolCall(id="c3", tool_name="add", input={"a": 5, "b": 5}),
        ]
        results = await engine.execute_parallel(calls)

        assert [r.call_id for r in results] == ["c1", "c2", "c3"]
        assert [r.success for r in results] == [True, False, True]
        assert results[0].result == 3
        assert results[1].error == "Tool 'missing' not found"

    async def test_parallel_respects_concurrency(self, engine: ToolEngine) -> None:
        active = 0
        peak = 0

        async def track(input: dict[str, Any]) -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        engine.register_tool(make_tool("track", track))
        await engine.execute_parallel(
            [ToolCall(tool_name="track") for _ in range(6)],
            concurrency=2,
        )
        assert peak == 2

    async def test_sequential(self, engine: ToolEngine) -> None:
        engine.register_tool(make_tool("add", add))
        results = await engine.execute_sequential(
            [ToolCall(tool_name="add", input={"a": i, "b": 0}) for i in range(3)]
        )
        assert [r.result for r in results] == [0, 1, 2]
