"""Orchestrator and tool engine configuration models."""

from pydantic import BaseModel, Field


class ToolEngineConfig(BaseModel):
    """Tool execution settings."""

    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-attempt tool timeout")
    max_retries: int = Field(default=3, ge=1, description="Attempts per tool call")
    retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Base delay between attempts, doubled each retry",
    )
    default_concurrency: int = Field(default=5, gt=0)


class OrchestratorConfig(BaseModel):
    """Top-level orchestrator defaults."""

    tenant_id: str = Field(default="default-tenant", description="Tenant used for sessions")
    default_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Deadline applied to agent and tool dispatch",
    )
    default_planner: str = Field(default="react", description="Planner type for new agents")
    default_max_iterations: int = Field(default=10, gt=0)
    enable_observability: bool = Field(default=True)
