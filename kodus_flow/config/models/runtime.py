"""Execution runtime configuration models."""

from pydantic import BaseModel, Field


class RuntimeRegistryConfig(BaseModel):
    """Thread registry eviction settings."""

    cleanup_interval_seconds: float = Field(
        default=600.0,
        gt=0,
        description="How often idle threads are swept",
    )
    thread_timeout_seconds: float = Field(
        default=1800.0,
        gt=0,
        description="Idle time after which a thread runtime is evicted",
    )


class ExecutionRuntimeConfig(BaseModel):
    """Context version log retention and ranking."""

    max_versions: int = Field(default=1000, gt=0, description="Versions kept by cleanup")
    max_executions: int = Field(default=100, gt=0, description="Execution traces kept by cleanup")
    relevance_decay_hours: float = Field(
        default=24.0,
        gt=0,
        description="Age at which relevance reaches its floor",
    )
    min_relevance: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Relevance floor for old versions",
    )
    max_planner_iterations: int = Field(
        default=10,
        gt=0,
        description="Iteration budget written into planner contexts",
    )
