"""Agent identity, configuration and execution results."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from kodus_flow.planning.status import Status

ExecutionMode = Literal["simple", "workflow"]


class AgentIdentity(BaseModel):
    """Who the agent is; rendered into the planner prompt."""

    role: str | None = None
    goal: str | None = None
    description: str | None = None
    expertise: list[str] | None = None
    personality: str | None = None
    style: str | None = None
    system_prompt: str | None = None

    def is_empty(self) -> bool:
        return not (self.role or self.goal or self.description or self.expertise)


class AgentConfig(BaseModel):
    """What create_agent() accepts."""

    name: str = Field(..., min_length=1)
    identity: AgentIdentity = Field(default_factory=AgentIdentity)
    description: str | None = None
    execution_mode: ExecutionMode = "simple"
    max_iterations: int | None = Field(default=None, gt=0)
    timeout_seconds: float | None = Field(default=None, gt=0)
    planner: str | None = None
    enable_session: bool = True
    enable_state: bool = True
    enable_memory: bool = True


class AgentDefinition(BaseModel):
    """A registered agent as resolved from its config and orchestrator defaults."""

    name: str
    description: str
    identity: AgentIdentity
    config: AgentConfig
    max_iterations: int
    planner: str


class AgentExecutionResult(BaseModel):
    success: bool
    output: Any = None
    reasoning: str = ""
    error: str | None = None
    correlation_id: str
    session_id: str
    execution_id: str
    status: Status
    iterations: int = 0
    tool_calls_count: int = 0
    errors_count: int = 0
    duration: float = Field(default=0.0, description="Seconds")
    metadata: dict[str, Any] = Field(default_factory=dict)
