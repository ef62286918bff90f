"""Tool registration and execution."""

from kodus_flow.tools.engine import ToolEngine
from kodus_flow.tools.models import ToolCall, ToolCallResult, ToolDefinition, ToolExecute

__all__ = ["ToolCall", "ToolCallResult", "ToolDefinition", "ToolEngine", "ToolExecute"]
