"""AgentCore: the think/act/observe loop shared by every agent runner.

One call to run():

1. builds a fresh AgentContext through the ContextBuilder;
2. starts the invocation lifecycle and registers the execution on the
   thread's ExecutionRuntime;
3. iterates think -> act -> observe until an observation completes the
   run, the context is cancelled, or the iteration budget is spent;
4. ends the execution on both the lifecycle and the runtime, records the
   exchange on the session and an execution pattern in memory;
5. releases the context.
"""

import time
from typing import Any

from kodus_flow.agents.models import AgentDefinition, AgentExecutionResult
from kodus_flow.context.builder import ContextBuilder
from kodus_flow.context.models import AgentContext, Thread, UserContext
from kodus_flow.errors import EngineError, ErrorCode
from kodus_flow.kernel.handler import KernelHandler
from kodus_flow.observability.logging import bind_execution_context, get_logger
from kodus_flow.observability.metrics import AGENT_ITERATIONS
from kodus_flow.observability.tracing import agent_phase_span
from kodus_flow.planning.models import ActionResult, AgentThought, ResultAnalysis
from kodus_flow.planning.planner import Planner
from kodus_flow.planning.status import Status, is_valid_status_transition
from kodus_flow.runtime.execution import ExecutionRuntime
from kodus_flow.runtime.models import ContextSource, ExecutionResult
from kodus_flow.tools.engine import ToolEngine

logger = get_logger(__name__)

TOOL_REQUEST_EVENT = "tool.execute.request"
MAX_PERSISTED_HISTORY = 20


class _RunState:
    """Mutable tallies for one run."""

    def __init__(self) -> None:
        self.iterations = 0
        self.tool_calls = 0
        self.errors = 0
        self.last_thought: AgentThought | None = None
        self.last_result: ActionResult | None = None
        self.last_observation: ResultAnalysis | None = None


class AgentCore:
    """Runs an agent definition against a planner and the shared services."""

    execution_mode = "simple"

    def __init__(
        self,
        definition: AgentDefinition,
        planner: Planner,
        context_builder: ContextBuilder,
        tool_engine: ToolEngine | None = None,
        kernel_handler: KernelHandler | None = None,
        tenant_id: str = "default",
    ) -> None:
        self.definition = definition
        self._planner = planner
        self._context_builder = context_builder
        self._tool_engine = tool_engine
        self._kernel = kernel_handler
        self._tenant_id = tenant_id
        self._executions = 0
        self._last_execution_id: str | None = None

    @property
    def name(self) -> str:
        return self.definition.name

    def set_kernel_handler(self, handler: KernelHandler) -> None:
        self._kernel = handler

    def get_status(self) -> dict[str, Any]:
        return {
            "executions": self._executions,
            "last_execution_id": self._last_execution_id,
        }

    async def run(
        self,
        input: str,
        runtime: ExecutionRuntime,
        thread: Thread | None = None,
        correlation_id: str | None = None,
        user_context: UserContext | None = None,
    ) -> AgentExecutionResult:
        context = await self._context_builder.create_agent_context(
            agent_name=self.name,
            thread=thread,
            tenant_id=self._tenant_id,
            correlation_id=correlation_id,
            user_context=user_context,
            agent_identity=self.definition.identity,
            execution_options={
                "max_iterations": self.definition.max_iterations,
                "planner": self.definition.planner,
                "execution_mode": self.execution_mode,
            },
        )
        try:
            return await self._run_with_context(input, context, runtime)
        finally:
            await context.cleanup()

    async def _run_with_context(
        self,
        input: str,
        context: AgentContext,
        runtime: ExecutionRuntime,
    ) -> AgentExecutionResult:
        execution_id = await context.lifecycle.start_execution(self.name)
        await runtime.start_execution(execution_id, context)
        self._executions += 1
        self._last_execution_id = execution_id
        bind_execution_context(agent_name=self.name, execution_id=execution_id)

        run = _RunState()
        start = time.monotonic()
        error: BaseException | None = None
        try:
            await runtime.add_context_value(
                "agent",
                "identity",
                self.definition.identity.model_dump(exclude_none=True),
                execution_id=execution_id,
            )
            self._transition(context, Status.EXECUTING)
            await self._loop(input, context, runtime, execution_id, run)
        except BaseException as e:
            error = e
            failed = Status.FAILED if isinstance(e, Exception) else Status.CANCELLED
            self._transition(context, failed, strict=False)
            raise
        finally:
            duration = time.monotonic() - start
            await self._finish(context, runtime, execution_id, run, duration, error)

        output = run.last_result.content if run.last_result else None
        success = context.system.status in (Status.COMPLETED, Status.WAITING_INPUT)
        await context.conversation.add_entry(input, output, agent_name=self.name)
        await context.memory.store_execution_pattern(
            "agent_execution",
            action=run.last_thought.action.model_dump(mode="json") if run.last_thought else None,
            result={"status": context.system.status.value, "success": success},
            context={"input": input[:200], "iterations": run.iterations},
        )
        AGENT_ITERATIONS.labels(agent_name=self.name).observe(run.iterations)

        return AgentExecutionResult(
            success=success,
            output=output,
            reasoning=run.last_thought.reasoning if run.last_thought else "",
            error=None if success else (run.last_result.error if run.last_result else None),
            correlation_id=context.correlation_id,
            session_id=context.session_id,
            execution_id=execution_id,
            status=context.system.status,
            iterations=run.iterations,
            tool_calls_count=run.tool_calls,
            errors_count=run.errors,
            duration=duration,
        )

    async def _loop(
        self,
        input: str,
        context: AgentContext,
        runtime: ExecutionRuntime,
        execution_id: str,
        run: _RunState,
    ) -> None:
        max_iterations = self.definition.max_iterations

        for iteration in range(1, max_iterations + 1):
            if context.cancelled:
                logger.info("agent_execution_cancelled", agent_name=self.name, iteration=iteration)
                self._transition(context, Status.CANCELLED)
                return

            run.iterations = iteration
            context.system.iteration = iteration
            try:
                planner_context = await runtime.build_planner_context(input, context)
                planner_context.iterations = iteration

                with agent_phase_span("think", self.name, context.correlation_id, iteration):
                    thought = await self._planner.think(planner_context)
                run.last_thought = thought
                await runtime.append(
                    ContextSource.LLM,
                    {
                        "action": "think",
                        "reasoning": thought.reasoning,
                        "action_type": thought.action.type,
                        "tool_name": thought.action.tool_name,
                    },
                    execution_id=execution_id,
                    metadata={"iteration": iteration},
                )

                with agent_phase_span(
                    "act",
                    self.name,
                    context.correlation_id,
                    iteration,
                    action_type=thought.action.type,
                ):
                    result = await self._act(thought, context, runtime, execution_id, run)
                run.last_result = result

                with agent_phase_span("observe", self.name, context.correlation_id, iteration):
                    observation = self._observe(result)
                run.last_observation = observation

                planner_context.update(thought, result, observation)
                await context.state.set(
                    "planner",
                    "history",
                    [
                        entry.model_dump(mode="json")
                        for entry in planner_context.history[-MAX_PERSISTED_HISTORY:]
                    ],
                )
                context.lifecycle.update_execution(
                    iteration=iteration,
                    tools_used=run.tool_calls,
                    current_thought=thought.reasoning,
                )
            except Exception as e:
                run.errors += 1
                if iteration == max_iterations:
                    raise
                logger.warning(
                    "agent_iteration_failed",
                    agent_name=self.name,
                    iteration=iteration,
                    error=str(e),
                )
                continue

            if observation.is_complete:
                planner_context.is_complete = True
                final = (
                    Status.WAITING_INPUT
                    if thought.action.type == "need_more_info"
                    else Status.COMPLETED
                )
                self._transition(context, final)
                return

        logger.warning(
            "agent_max_iterations_reached",
            agent_name=self.name,
            max_iterations=max_iterations,
        )
        self._transition(context, Status.STAGNATED)

    async def _act(
        self,
        thought: AgentThought,
        context: AgentContext,
        runtime: ExecutionRuntime,
        execution_id: str,
        run: _RunState,
    ) -> ActionResult:
        action = thought.action
        if action.type == "final_answer":
            result = ActionResult(type="final_answer", content=action.content)
        elif action.type == "need_more_info":
            result = ActionResult(type="final_answer", content=action.question or action.content)
        elif not action.tool_name:
            result = ActionResult(type="error", error="Tool call without a tool name")
        else:
            result = await self._call_tool(
                action.tool_name, action.input, context, runtime, execution_id
            )
            run.tool_calls += 1
            context.system.tools_used += 1
            if result.type == "error":
                run.errors += 1

        await runtime.append(
            ContextSource.TOOL if action.type == "tool_call" else ContextSource.AGENT,
            {
                "action": "act",
                "action_type": action.type,
                "tool_name": action.tool_name,
                "result_type": result.type,
            },
            execution_id=execution_id,
            metadata={"success": result.type != "error", **result.metadata},
        )
        return result

    async def _call_tool(
        self,
        tool_name: str,
        input: dict[str, Any],
        context: AgentContext,
        runtime: ExecutionRuntime,
        execution_id: str,
    ) -> ActionResult:
        start = time.monotonic()
        try:
            if self._kernel is not None and self._kernel.has_handler(TOOL_REQUEST_EVENT):
                output = await self._kernel.request(
                    TOOL_REQUEST_EVENT,
                    {
                        "tool_name": tool_name,
                        "input": input,
                        "correlation_id": context.correlation_id,
                    },
                )
            elif self._tool_engine is not None:
                output = await self._tool_engine.execute_call(tool_name, input)
            else:
                raise EngineError(
                    "No tool engine available",
                    code=ErrorCode.TOOL_ERROR,
                    context={"tool_name": tool_name},
                )
        except Exception as e:
            duration = time.monotonic() - start
            logger.warning(
                "agent_tool_failed", agent_name=self.name, tool_name=tool_name, error=str(e)
            )
            await self._record_tool_usage(
                tool_name, input, None, False, duration, context, runtime, execution_id
            )
            return ActionResult(
                type="error",
                error=str(e),
                metadata={"tool_name": tool_name, "duration": duration},
            )

        duration = time.monotonic() - start
        await self._record_tool_usage(
            tool_name, input, output, True, duration, context, runtime, execution_id
        )
        return ActionResult(
            type="tool_result",
            content=output,
            metadata={"tool_name": tool_name, "duration": duration},
        )

    async def _record_tool_usage(
        self,
        tool_name: str,
        input: dict[str, Any],
        output: Any,
        success: bool,
        duration: float,
        context: AgentContext,
        runtime: ExecutionRuntime,
        execution_id: str,
    ) -> None:
        stats_type = f"tool:{tool_name}"
        previous = runtime.get_context_type(stats_type)
        count = previous.get("usage_count", 0)
        errors = previous.get("error_rate", 0.0) * count + (0 if success else 1)
        average = (previous.get("avg_response_time", 0.0) * count + duration * 1000) / (count + 1)

        for key, value in (
            ("usage_count", count + 1),
            ("last_success", success),
            ("error_rate", errors / (count + 1)),
            ("avg_response_time", average),
            ("last_used", int(time.time() * 1000)),
        ):
            await runtime.add_context_value(stats_type, key, value, execution_id=execution_id)

        await context.memory.store_tool_usage_pattern(tool_name, input, output, success, duration)

    def _observe(self, result: ActionResult) -> ResultAnalysis:
        if result.type == "final_answer":
            return ResultAnalysis(
                is_complete=True,
                is_successful=True,
                should_continue=False,
                feedback="Final answer produced",
            )
        if result.type == "error":
            return ResultAnalysis(
                is_complete=False,
                is_successful=False,
                should_continue=True,
                feedback=f"Action failed: {result.error}",
            )
        return ResultAnalysis(
            is_complete=False,
            is_successful=True,
            should_continue=True,
            feedback="Tool result received",
        )

    async def _finish(
        self,
        context: AgentContext,
        runtime: ExecutionRuntime,
        execution_id: str,
        run: _RunState,
        duration: float,
        error: BaseException | None,
    ) -> None:
        status = context.system.status
        if error is not None:
            outcome = "error" if isinstance(error, Exception) else "cancelled"
        elif status in (Status.COMPLETED, Status.WAITING_INPUT):
            outcome = "success"
        elif status == Status.CANCELLED:
            outcome = "cancelled"
        else:
            outcome = "error"

        await runtime.end_execution(
            execution_id,
            ExecutionResult(
                status=outcome,
                duration=duration,
                output=run.last_result.content if run.last_result else None,
                error=str(error) if error else None,
            ),
        )
        await context.lifecycle.end_execution(
            success=outcome == "success",
            error=error,
            output_summary=f"{status.value} after {run.iterations} iteration(s)",
        )

    def _transition(self, context: AgentContext, status: Status, strict: bool = True) -> None:
        if not strict and not is_valid_status_transition(context.system.status, status):
            logger.debug(
                "status_transition_skipped",
                from_status=context.system.status.value,
                to_status=status.value,
            )
            return
        context.system.transition_to(status)
