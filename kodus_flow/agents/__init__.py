"""Agent runners and their configuration models."""

from kodus_flow.agents.core import AgentCore
from kodus_flow.agents.engine import AgentEngine
from kodus_flow.agents.executor import AgentExecutor
from kodus_flow.agents.models import (
    AgentConfig,
    AgentDefinition,
    AgentExecutionResult,
    AgentIdentity,
    ExecutionMode,
)

__all__ = [
    "AgentConfig",
    "AgentCore",
    "AgentDefinition",
    "AgentEngine",
    "AgentExecutionResult",
    "AgentExecutor",
    "AgentIdentity",
    "ExecutionMode",
]
