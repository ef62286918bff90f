"""kodus_flow: agent execution and context orchestration.

Typical use:

    orchestrator = SDKOrchestrator(llm_adapter)
    orchestrator.create_agent({"name": "Echo", "identity": {"role": "echo"}})
    result = await orchestrator.call_agent("Echo", "hello", thread={"id": "t1"})
"""

from kodus_flow.agents.models import AgentConfig, AgentDefinition, AgentIdentity
from kodus_flow.context.models import AgentContext, Thread, UserContext
from kodus_flow.errors import ErrorCode, KodusFlowError
from kodus_flow.orchestration.models import OrchestrationResult
from kodus_flow.orchestration.orchestrator import SDKOrchestrator
from kodus_flow.runtime.execution import ExecutionRuntime
from kodus_flow.runtime.registry import RuntimeRegistry
from kodus_flow.tools.models import ToolDefinition

__version__ = "0.1.0"

__all__ = [
    "AgentConfig",
    "AgentContext",
    "AgentDefinition",
    "AgentIdentity",
    "ErrorCode",
    "ExecutionRuntime",
    "KodusFlowError",
    "OrchestrationResult",
    "RuntimeRegistry",
    "SDKOrchestrator",
    "Thread",
    "ToolDefinition",
    "UserContext",
    "__version__",
]
