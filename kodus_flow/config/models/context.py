"""Session, working-state and memory configuration models."""

from typing import Literal

from pydantic import BaseModel, Field


class SessionConfig(BaseModel):
    """In-memory session service settings."""

    max_sessions: int = Field(default=1000, gt=0, description="Sessions kept before LRU eviction")
    session_timeout_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Inactivity before a session expires",
    )
    max_conversation_history: int = Field(
        default=100,
        gt=0,
        description="Conversation entries kept per session",
    )
    enable_auto_cleanup: bool = Field(default=True, description="Sweep expired sessions")
    cleanup_interval_seconds: float = Field(default=300.0, gt=0)


class StateConfig(BaseModel):
    """Per-invocation working memory caps."""

    max_namespaces: int = Field(default=50, gt=0)
    max_namespace_size: int = Field(default=1000, gt=0)


class MemoryConfig(BaseModel):
    """Long-term memory settings."""

    adapter_type: Literal["memory"] = Field(default="memory", description="Storage adapter")
    max_items: int = Field(default=10000, gt=0, description="Items kept by the in-memory adapter")
