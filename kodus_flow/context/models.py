"""Agent context: the bundle handed to an agent's decision logic."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kodus_flow.planning.status import Status, validate_transition
from kodus_flow.utils.ids import validate_thread_id

if TYPE_CHECKING:
    from kodus_flow.agents.models import AgentIdentity
    from kodus_flow.context.accessors import ConversationAccess, MemoryAccess, WorkingState
    from kodus_flow.context.session import ConversationEntry
    from kodus_flow.runtime.lifecycle import ExecutionLifecycle


class Thread(BaseModel):
    """A conversation/workflow identity that execution state is scoped to."""

    model_config = ConfigDict(frozen=True)

    id: str
    metadata: dict[str, str | int | float] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Reject ids outside [A-Za-z0-9_-] with InvalidThreadIdError."""
        return validate_thread_id(v)


class UserContext(BaseModel):
    """Caller-supplied context; read-only for the duration of an execution."""

    model_config = ConfigDict(frozen=True)

    id: str = "anonymous"
    preferences: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


@dataclass
class SystemContext:
    """Mutable execution bookkeeping for one invocation."""

    tenant_id: str
    correlation_id: str
    session_id: str
    thread_id: str
    execution_id: str
    start_time: float = field(default_factory=time.monotonic)
    iteration: int = 0
    tools_used: int = 0
    conversation_history: list["ConversationEntry"] = field(default_factory=list)
    status: Status = Status.PENDING

    def transition_to(self, status: Status) -> None:
        """Change status through the transition table."""
        self.status = validate_transition(self.status, status)


@dataclass
class AgentContext:
    """Everything one agent invocation may touch.

    Built per invocation by ContextBuilder. Shared services (session, memory)
    are reached through narrow accessors; cleanup() only releases what this
    invocation owns.
    """

    agent_name: str
    invocation_id: str
    tenant_id: str
    correlation_id: str
    session_id: str
    thread: Thread
    user: UserContext
    system: SystemContext
    state: "WorkingState"
    conversation: "ConversationAccess"
    memory: "MemoryAccess"
    lifecycle: "ExecutionLifecycle"
    agent_identity: "AgentIdentity | None" = None
    available_tools: list[dict[str, Any]] = field(default_factory=list)
    execution_options: dict[str, Any] = field(default_factory=dict)
    signal: asyncio.Event = field(default_factory=asyncio.Event)
    on_cleanup: Callable[[], Awaitable[None]] | None = None

    @property
    def thread_id(self) -> str:
        return self.thread.id

    @property
    def cancelled(self) -> bool:
        return self.signal.is_set()

    def cancel(self) -> None:
        """Request cooperative cancellation; loops check it between steps."""
        self.signal.set()

    async def cleanup(self) -> None:
        """Release per-invocation resources. Safe to call more than once."""
        if self.on_cleanup is not None:
            callback, self.on_cleanup = self.on_cleanup, None
            await callback()
