"""ToolEngine: registration and resilient execution of tools."""

import asyncio
import time
from typing import Any

from kodus_flow.config.models.orchestrator import ToolEngineConfig
from kodus_flow.errors import ExecutionTimeoutError, ToolNotFoundError
from kodus_flow.kernel.handler import KernelHandler
from kodus_flow.observability.logging import get_logger
from kodus_flow.observability.metrics import ERRORS, TOOL_CALL_LATENCY, TOOL_CALLS
from kodus_flow.tools.models import ToolCall, ToolCallResult, ToolDefinition

logger = get_logger(__name__)


class ToolEngine:
    """Holds registered tools and executes calls with timeout and retry."""

    def __init__(
        self,
        config: ToolEngineConfig | None = None,
        kernel_handler: KernelHandler | None = None,
    ) -> None:
        self._config = config or ToolEngineConfig()
        self._tools: dict[str, ToolDefinition] = {}
        self._kernel = kernel_handler

    def set_kernel_handler(self, handler: KernelHandler) -> None:
        self._kernel = handler

    def register_tool(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            logger.warning("tool_overwritten", tool_name=tool.name)
        self._tools[tool.name] = tool
        logger.info("tool_registered", tool_name=tool.name, categories=tool.categories)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_tool(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def get_available_tools(self) -> list[dict[str, Any]]:
        return [tool.to_planner_info() for tool in self._tools.values()]

    async def execute_call(
        self,
        tool_name: str,
        input: dict[str, Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> Any:
        """Execute a tool, retrying failed attempts with exponential backoff.

        Raises:
            ToolNotFoundError: If the tool is not registered
            ExecutionTimeoutError: If the last attempt timed out
            Exception: Whatever the last attempt raised
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            raise ToolNotFoundError(tool_name)

        input = input or {}
        timeout = timeout_seconds or self._config.timeout_seconds
        attempts = self._config.max_retries
        start = time.perf_counter()
        await self._emit("tool.execution.start", {"tool_name": tool_name, "input": input})

        for attempt in range(1, attempts + 1):
            try:
                result = await asyncio.wait_for(tool.execute(input), timeout=timeout)
            except Exception as e:
                error: Exception = e
                if isinstance(e, asyncio.TimeoutError):
                    error = ExecutionTimeoutError(
                        f"Tool '{tool_name}' timed out after {timeout}s",
                        timeout_seconds=timeout,
                        context={"tool_name": tool_name, "attempt": attempt},
                    )
                logger.warning(
                    "tool_attempt_failed",
                    tool_name=tool_name,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(error),
                )
                if attempt == attempts:
                    TOOL_CALLS.labels(tool_name=tool_name, status="error").inc()
                    ERRORS.labels(component="tool_engine", error_code=type(error).__name__).inc()
                    await self._emit(
                        "tool.execution.error",
                        {"tool_name": tool_name, "error": str(error), "attempts": attempt},
                    )
                    if error is e:
                        raise
                    raise error from e
                await asyncio.sleep(self._config.retry_backoff_seconds * 2 ** (attempt - 1))
            else:
                elapsed = time.perf_counter() - start
                TOOL_CALLS.labels(tool_name=tool_name, status="success").inc()
                TOOL_CALL_LATENCY.labels(tool_name=tool_name).observe(elapsed)
                await self._emit(
                    "tool.execution.success",
                    {"tool_name": tool_name, "duration": elapsed, "attempts": attempt},
                )
                logger.debug(
                    "tool_executed", tool_name=tool_name, attempts=attempt, duration=elapsed
                )
                return result

    async def execute_parallel(
        self,
        calls: list[ToolCall],
        concurrency: int | None = None,
    ) -> list[ToolCallResult]:
        """Run calls concurrently; results keep the order of `calls`."""
        semaphore = asyncio.Semaphore(concurrency or self._config.default_concurrency)

        async def run(call: ToolCall) -> ToolCallResult:
            async with semaphore:
                return await self._run_call(call)

        return list(await asyncio.gather(*(run(call) for call in calls)))

    async def execute_sequential(self, calls: list[ToolCall]) -> list[ToolCallResult]:
        return [await self._run_call(call) for call in calls]

    async def _run_call(self, call: ToolCall) -> ToolCallResult:
        try:
            result = await self.execute_call(call.tool_name, call.input)
        except Exception as e:
            return ToolCallResult(call_id=call.id, tool_name=call.tool_name, error=str(e))
        return ToolCallResult(call_id=call.id, tool_name=call.tool_name, result=result)

    async def _emit(self, event_type: str, data: dict[str, Any]) -> None:
        if self._kernel is not None:
            await self._kernel.emit(event_type, data)
