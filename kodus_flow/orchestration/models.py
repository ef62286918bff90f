"""Result envelope returned across the orchestrator boundary."""

from typing import Any

from pydantic import BaseModel, Field


class OrchestrationResult(BaseModel):
    """Uniform outcome of call_agent/call_tool; failures are values, not exceptions."""

    success: bool
    result: Any = None
    error: str | None = None
    error_code: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    duration: float | None = Field(default=None, description="Seconds")
    metadata: dict[str, Any] = Field(default_factory=dict)
