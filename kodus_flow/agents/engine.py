"""AgentEngine: direct ("simple") agent execution."""

from kodus_flow.agents.core import AgentCore
from kodus_flow.agents.models import AgentExecutionResult
from kodus_flow.context.models import Thread, UserContext
from kodus_flow.observability.logging import get_logger
from kodus_flow.runtime.execution import ExecutionRuntime

logger = get_logger(__name__)


class AgentEngine(AgentCore):
    """Runs the agent loop directly on each call."""

    execution_mode = "simple"

    async def execute(
        self,
        input: str,
        runtime: ExecutionRuntime,
        thread: Thread | None = None,
        correlation_id: str | None = None,
        user_context: UserContext | None = None,
    ) -> AgentExecutionResult:
        logger.debug("agent_engine_execute", agent_name=self.name)
        return await self.run(input, runtime, thread, correlation_id, user_context)
