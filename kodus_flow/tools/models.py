"""Tool definitions and call records."""

from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field

from kodus_flow.utils.ids import IdGenerator

ToolExecute = Callable[[dict[str, Any]], Awaitable[Any]]


class ToolDefinition(BaseModel):
    """A named async callable an agent can invoke."""

    name: str = Field(..., min_length=1)
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    categories: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    execute: ToolExecute = Field(..., exclude=True, repr=False)

    def to_planner_info(self) -> dict[str, Any]:
        """Metadata the planner sees; the callable is never exposed."""
        return self.model_dump(
            include={"name", "description", "input_schema", "categories", "dependencies"}
        )


class ToolCall(BaseModel):
    id: str = Field(default_factory=IdGenerator.call_id)
    tool_name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolCallResult(BaseModel):
    """Outcome of one call in a batch; exactly one of result/error is meaningful."""

    call_id: str
    tool_name: str
    result: Any = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None
