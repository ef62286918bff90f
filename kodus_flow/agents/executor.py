"""AgentExecutor: "workflow" agent execution that can be paused."""

from typing import Any

from kodus_flow.agents.core import AgentCore
from kodus_flow.agents.models import AgentExecutionResult
from kodus_flow.context.models import Thread, UserContext
from kodus_flow.errors import EngineError, ErrorCode
from kodus_flow.observability.logging import get_logger
from kodus_flow.runtime.execution import ExecutionRuntime
from kodus_flow.utils.ids import IdGenerator

logger = get_logger(__name__)


class AgentExecutor(AgentCore):
    """Agent runner with a workflow identity and pause/resume control."""

    execution_mode = "workflow"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.workflow_execution_id = IdGenerator.execution_id()
        self._paused = False
        self._pause_reason: str | None = None

    @property
    def is_paused(self) -> bool:
        return self._paused

    async def execute(
        self,
        input: str,
        runtime: ExecutionRuntime,
        thread: Thread | None = None,
        correlation_id: str | None = None,
        user_context: UserContext | None = None,
    ) -> AgentExecutionResult:
        """Run the agent loop.

        Raises:
            EngineError: If the executor is paused
        """
        if self._paused:
            raise EngineError(
                f"Agent execution is paused: {self._pause_reason}",
                code=ErrorCode.AGENT_ERROR,
                context={"agent_name": self.name, "reason": self._pause_reason},
                recoverable=True,
            )
        result = await self.run(input, runtime, thread, correlation_id, user_context)
        result.metadata["workflow_execution_id"] = self.workflow_execution_id
        return result

    def pause(self, reason: str = "manual") -> None:
        self._paused = True
        self._pause_reason = reason
        logger.info("agent_executor_paused", agent_name=self.name, reason=reason)

    def resume(self) -> None:
        self._paused = False
        self._pause_reason = None
        logger.info("agent_executor_resumed", agent_name=self.name)

    def get_status(self) -> dict[str, Any]:
        return {
            **super().get_status(),
            "workflow_execution_id": self.workflow_execution_id,
            "is_paused": self._paused,
            "pause_reason": self._pause_reason,
        }
