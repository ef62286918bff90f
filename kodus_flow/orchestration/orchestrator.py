"""SDKOrchestrator: registers agents and tools and dispatches calls to them.

call_agent() and call_tool() never raise: every failure, including unknown
names, invalid thread ids and timeouts, comes back as an unsuccessful
OrchestrationResult.
"""

import asyncio
import json
import time
from typing import Any

from kodus_flow.adapters.llm import LLMAdapter
from kodus_flow.adapters.mcp import MCPAdapter
from kodus_flow.agents.engine import AgentEngine
from kodus_flow.agents.executor import AgentExecutor
from kodus_flow.agents.models import AgentConfig, AgentDefinition, AgentIdentity
from kodus_flow.config import get_settings
from kodus_flow.config.settings import Settings
from kodus_flow.context.builder import ContextBuilder
from kodus_flow.context.models import Thread, UserContext
from kodus_flow.context.session import SessionService
from kodus_flow.errors import (
    AgentInitializationError,
    AgentNotFoundError,
    EngineError,
    ErrorCode,
    ExecutionTimeoutError,
    InvalidIdentityError,
    KodusFlowError,
    ToolNotFoundError,
    ValidationError,
)
from kodus_flow.kernel.handler import KernelHandler
from kodus_flow.memory.manager import MemoryManager
from kodus_flow.observability.logging import clear_execution_context, get_logger
from kodus_flow.observability.metrics import AGENT_CALL_LATENCY, AGENT_CALLS, ERRORS
from kodus_flow.observability.setup import configure_observability
from kodus_flow.observability.tracing import create_span, record_exception, set_span_attributes
from kodus_flow.orchestration.models import OrchestrationResult
from kodus_flow.planning.planner import LLMPlanner
from kodus_flow.runtime.registry import RuntimeRegistry
from kodus_flow.tools.engine import ToolEngine
from kodus_flow.tools.models import ToolDefinition, ToolExecute
from kodus_flow.utils.ids import IdGenerator

logger = get_logger(__name__)

SUPPORTED_PLANNERS = frozenset({"react"})

AgentRunner = AgentEngine | AgentExecutor


class SDKOrchestrator:
    """Top-level facade over agents, tools, contexts and thread runtimes.

    Args:
        llm_adapter: Completion backend used by every agent's planner
        mcp_adapter: Optional MCP client whose tools can be registered
        settings: Configuration; defaults to get_settings()
        memory_manager: Shared long-term memory; built from settings if omitted
    """

    def __init__(
        self,
        llm_adapter: LLMAdapter | None,
        mcp_adapter: MCPAdapter | None = None,
        settings: Settings | None = None,
        memory_manager: MemoryManager | None = None,
    ) -> None:
        if llm_adapter is None:
            raise AgentInitializationError(
                "An LLM adapter is required to create an orchestrator",
                code=ErrorCode.ENGINE_AGENT_INITIALIZATION_FAILED,
            )

        self._settings = settings or get_settings()
        self._config = self._settings.orchestrator
        if self._config.enable_observability:
            configure_observability(self._settings.observability)

        self._llm = llm_adapter
        self._mcp = mcp_adapter
        self._kernel = KernelHandler()
        self._memory = memory_manager or MemoryManager(self._settings.memory)
        self._sessions = SessionService(self._settings.session)
        self._tool_engine = ToolEngine(self._settings.tools, kernel_handler=self._kernel)
        self._context_builder = ContextBuilder(
            memory_manager=self._memory,
            session_service=self._sessions,
            state_config=self._settings.state,
        )
        self._context_builder.set_tool_engine(self._tool_engine)
        self._registry = RuntimeRegistry(
            self._memory,
            config=self._settings.registry,
            runtime_config=self._settings.runtime,
            session_service=self._sessions,
        )
        self._agents: dict[str, AgentRunner] = {}

        logger.info(
            "orchestrator_initialized",
            tenant_id=self._config.tenant_id,
            llm_provider=self._llm_provider(),
            mcp_enabled=mcp_adapter is not None,
            default_planner=self._config.default_planner,
        )

    @property
    def registry(self) -> RuntimeRegistry:
        return self._registry

    @property
    def context_builder(self) -> ContextBuilder:
        return self._context_builder

    @property
    def tool_engine(self) -> ToolEngine:
        return self._tool_engine

    @property
    def kernel_handler(self) -> KernelHandler:
        return self._kernel

    @property
    def session_service(self) -> SessionService:
        return self._sessions

    # Agents

    def create_agent(self, config: AgentConfig | dict[str, Any]) -> AgentDefinition:
        """Validate and register an agent; the last registration of a name wins.

        Raises:
            InvalidIdentityError: If role, goal, description and expertise are all empty
            ValidationError: If the planner type is not supported
        """
        if isinstance(config, dict):
            config = AgentConfig.model_validate(config)

        if config.identity.is_empty():
            raise InvalidIdentityError(
                f"Agent '{config.name}' needs at least one of role, goal, description or expertise",
                context={"agent_name": config.name},
            )

        planner = config.planner or self._config.default_planner
        if planner not in SUPPORTED_PLANNERS:
            raise ValidationError(
                f"Unsupported planner type: {planner}",
                context={"agent_name": config.name, "planner": planner},
            )

        definition = AgentDefinition(
            name=config.name,
            description=config.description or _describe(config.identity, config.name),
            identity=config.identity,
            config=config,
            max_iterations=config.max_iterations or self._config.default_max_iterations,
            planner=planner,
        )

        runner_cls = AgentExecutor if config.execution_mode == "workflow" else AgentEngine
        runner = runner_cls(
            definition,
            LLMPlanner(self._llm),
            self._context_builder,
            tool_engine=self._tool_engine,
            kernel_handler=self._kernel,
            tenant_id=self._config.tenant_id,
        )

        if config.name in self._agents:
            logger.warning("agent_overwritten", agent_name=config.name)
        self._agents[config.name] = runner

        logger.info(
            "agent_created",
            agent_name=config.name,
            execution_mode=config.execution_mode,
            planner=planner,
            max_iterations=definition.max_iterations,
        )
        return definition

    async def call_agent(
        self,
        agent_name: str,
        input: Any,
        thread: Thread | dict[str, Any] | None = None,
        user_context: UserContext | dict[str, Any] | None = None,
        session_id: str | None = None,
        correlation_id: str | None = None,
    ) -> OrchestrationResult:
        """Run an agent and wrap the outcome in an OrchestrationResult."""
        start = time.perf_counter()
        correlation_id = correlation_id or IdGenerator.correlation_id()
        context: dict[str, Any] = {"agent_name": agent_name, "correlation_id": correlation_id}
        execution_mode = "unknown"

        logger.info("agent_call_started", agent_name=agent_name, correlation_id=correlation_id)

        with create_span(
            "kodus_flow.orchestrator.call_agent",
            attributes={
                "kodus_flow.agent_name": agent_name,
                "kodus_flow.correlation_id": correlation_id,
            },
        ) as span:
            try:
                runner = self._agents.get(agent_name)
                if runner is None:
                    raise AgentNotFoundError(agent_name)
                execution_mode = runner.execution_mode

                resolved_thread = self._resolve_thread(thread, session_id)
                context["thread_id"] = resolved_thread.id
                runtime = await self._registry.get_by_thread(resolved_thread.id)
                self._sessions.start_auto_cleanup()

                timeout = (
                    runner.definition.config.timeout_seconds
                    or self._config.default_timeout_seconds
                )
                try:
                    result = await asyncio.wait_for(
                        runner.execute(
                            _as_text(input),
                            runtime,
                            thread=resolved_thread,
                            correlation_id=correlation_id,
                            user_context=_as_user_context(user_context),
                        ),
                        timeout=timeout,
                    )
                except asyncio.TimeoutError as e:
                    raise ExecutionTimeoutError(
                        f"Agent execution timed out after {timeout:g}s",
                        timeout_seconds=timeout,
                        context={"agent_name": agent_name},
                    ) from e
            except Exception as e:
                duration = time.perf_counter() - start
                record_exception(span, e)
                return self._failure(
                    "agent",
                    e,
                    context,
                    duration,
                    labels={"agent_name": agent_name, "execution_mode": execution_mode},
                )
            finally:
                clear_execution_context()

            duration = time.perf_counter() - start
            status = "success" if result.success else "error"
            AGENT_CALLS.labels(
                agent_name=agent_name, execution_mode=execution_mode, status=status
            ).inc()
            AGENT_CALL_LATENCY.labels(
                agent_name=agent_name, execution_mode=execution_mode
            ).observe(duration)
            set_span_attributes(
                span,
                **{
                    "kodus_flow.iterations": result.iterations,
                    "kodus_flow.status": result.status.value,
                },
            )

            context.update({"session_id": result.session_id, "execution_id": result.execution_id})
            logger.info(
                "agent_call_completed",
                agent_name=agent_name,
                correlation_id=correlation_id,
                success=result.success,
                status=result.status.value,
                iterations=result.iterations,
                duration=duration,
            )
            return OrchestrationResult(
                success=result.success,
                result=result.output,
                error=None
                if result.success
                else result.error or f"Agent finished with status '{result.status.value}'",
                context=context,
                duration=duration,
                metadata={
                    "agent_name": agent_name,
                    "correlation_id": correlation_id,
                    "execution_mode": execution_mode,
                    "status": result.status.value,
                    "iterations": result.iterations,
                    "tool_calls_count": result.tool_calls_count,
                    "errors_count": result.errors_count,
                    "reasoning": result.reasoning,
                    **result.metadata,
                },
            )

    def list_agents(self) -> list[str]:
        return list(self._agents)

    def get_agent_status(self, agent_name: str) -> dict[str, Any] | None:
        runner = self._agents.get(agent_name)
        if runner is None:
            return None
        return {
            "name": agent_name,
            "type": type(runner).__name__,
            "execution_mode": runner.execution_mode,
            **runner.get_status(),
        }

    # Tools

    def create_tool(
        self,
        name: str,
        description: str,
        execute: ToolExecute,
        input_schema: dict[str, Any] | None = None,
        categories: list[str] | None = None,
    ) -> ToolDefinition:
        tool = ToolDefinition(
            name=name,
            description=description,
            execute=execute,
            categories=categories or [],
            **({"input_schema": input_schema} if input_schema is not None else {}),
        )
        self._tool_engine.register_tool(tool)
        return tool

    async def call_tool(
        self, tool_name: str, input: dict[str, Any] | None = None
    ) -> OrchestrationResult:
        """Execute a registered tool and wrap the outcome in an OrchestrationResult."""
        start = time.perf_counter()
        correlation_id = IdGenerator.correlation_id()
        context = {"tool_name": tool_name, "correlation_id": correlation_id}

        timeout = self._config.default_timeout_seconds
        try:
            if not self._tool_engine.has_tool(tool_name):
                raise ToolNotFoundError(tool_name)
            try:
                result = await asyncio.wait_for(
                    self._tool_engine.execute_call(tool_name, input or {}),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as e:
                raise ExecutionTimeoutError(
                    f"Tool execution timed out after {timeout:g}s",
                    timeout_seconds=timeout,
                    context={"tool_name": tool_name},
                ) from e
        except Exception as e:
            return self._failure("tool", e, context, time.perf_counter() - start)

        duration = time.perf_counter() - start
        logger.info("tool_call_completed", tool_name=tool_name, duration=duration)
        return OrchestrationResult(
            success=True,
            result=result,
            context=context,
            duration=duration,
            metadata={"tool_name": tool_name, "correlation_id": correlation_id},
        )

    def get_registered_tools(self) -> list[dict[str, Any]]:
        return [
            {"name": tool.name, "description": tool.description, "categories": tool.categories}
            for tool in self._tool_engine.list_tools()
        ]

    # MCP

    async def connect_mcp(self) -> None:
        await self._require_mcp().connect()
        logger.info("mcp_connected")

    async def disconnect_mcp(self) -> None:
        await self._require_mcp().disconnect()
        logger.info("mcp_disconnected")

    async def register_mcp_tools(self) -> int:
        """Register every tool the MCP adapter advertises. Returns the count."""
        mcp = self._require_mcp()
        tools = await mcp.get_tools()
        for raw in tools:
            self._tool_engine.register_tool(
                ToolDefinition(
                    name=raw.name,
                    description=raw.description or f"MCP tool {raw.name}",
                    input_schema=raw.input_schema or {"type": "object", "properties": {}},
                    categories=["mcp", raw.server_name],
                    execute=_mcp_executor(mcp, raw.name, raw.server_name),
                )
            )
        logger.info("mcp_tools_registered", count=len(tools))
        return len(tools)

    # Introspection

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_agents": len(self._agents),
            "agent_names": list(self._agents),
            "available_tools": len(self._tool_engine.list_tools()),
            "tenant_id": self._config.tenant_id,
            "llm_provider": self._llm_provider(),
            "default_planner": self._config.default_planner,
            "runtime_threads": self._registry.thread_count,
        }

    async def health(self) -> dict[str, Any]:
        builder_health = await self._context_builder.health()
        return {
            "status": builder_health["status"],
            "context_builder": builder_health,
            "registry": self._registry.get_stats(),
            "agents": len(self._agents),
            "tools": len(self._tool_engine.list_tools()),
        }

    async def shutdown(self) -> None:
        await self._registry.stop_cleanup()
        await self._sessions.stop_auto_cleanup()
        logger.info("orchestrator_shutdown")

    def _resolve_thread(
        self, thread: Thread | dict[str, Any] | None, session_id: str | None
    ) -> Thread:
        if isinstance(thread, dict):
            return Thread.model_validate(thread)
        if thread is not None:
            return thread
        if session_id:
            session = self._sessions.get_session(session_id)
            if session is not None:
                return Thread(id=session.thread_id)
        return Thread(
            id=f"thread-{IdGenerator.call_id()}",
            metadata={"description": "Auto-generated thread", "type": "auto"},
        )

    def _require_mcp(self) -> MCPAdapter:
        if self._mcp is None:
            raise EngineError("MCP adapter not configured", code=ErrorCode.MCP_ERROR)
        return self._mcp

    def _llm_provider(self) -> str:
        get_provider = getattr(self._llm, "get_provider", None)
        return get_provider() if callable(get_provider) else type(self._llm).__name__

    def _failure(
        self,
        component: str,
        error: Exception,
        context: dict[str, Any],
        duration: float,
        labels: dict[str, str] | None = None,
    ) -> OrchestrationResult:
        code = error.code.value if isinstance(error, KodusFlowError) else type(error).__name__
        ERRORS.labels(component=f"orchestrator.{component}", error_code=code).inc()
        if labels is not None:
            AGENT_CALLS.labels(status="error", **labels).inc()
        logger.error(
            f"{component}_call_failed",
            error=str(error),
            error_code=code,
            duration=duration,
            **context,
        )
        return OrchestrationResult(
            success=False,
            error=str(error),
            error_code=code,
            context={**context, "duration": duration},
            duration=duration,
            metadata={**context, "error": str(error)},
        )


def _mcp_executor(mcp: MCPAdapter, name: str, server_name: str) -> ToolExecute:
    async def execute(args: dict[str, Any]) -> Any:
        return await mcp.execute_tool(name, args, server_name)

    return execute


def _describe(identity: AgentIdentity, name: str) -> str:
    return identity.description or identity.goal or identity.role or f"Agent {name}"


def _as_text(input: Any) -> str:
    if isinstance(input, str):
        return input
    return json.dumps(input, default=str)


def _as_user_context(user_context: UserContext | dict[str, Any] | None) -> UserContext | None:
    if isinstance(user_context, dict):
        return UserContext.model_validate(user_context)
    return user_context
