"""Per-invocation execution lifecycle.

SimpleExecutionRuntime only tracks whether one agent invocation is running.
Agent contexts receive it through the ExecutionLifecycle protocol, which is
the narrow capability an agent is allowed to drive; the thread-level
ExecutionRuntime (versioning, queries) is never handed to agent code.
"""

import time
from dataclasses import dataclass
from typing import Any, Literal, Protocol, runtime_checkable

from kodus_flow.errors import AlreadyRunningError, NotRunningError
from kodus_flow.observability.logging import get_logger
from kodus_flow.utils.ids import IdGenerator

logger = get_logger(__name__)

SummaryStatus = Literal["running", "completed", "idle"]


@dataclass(frozen=True)
class ExecutionIdentifiers:
    """Where an invocation runs."""

    session_id: str
    tenant_id: str
    thread_id: str


@runtime_checkable
class ExecutionLifecycle(Protocol):
    """Capability exposed to agent code for its own invocation."""

    @property
    def execution_id(self) -> str: ...

    @property
    def is_running(self) -> bool: ...

    async def start_execution(self, agent_name: str) -> str: ...

    async def end_execution(
        self,
        success: bool,
        error: BaseException | None = None,
        output_summary: str | None = None,
    ) -> None: ...

    def update_execution(self, **updates: Any) -> None: ...

    def get_summary(self) -> dict[str, Any]: ...

    async def health(self) -> dict[str, Any]: ...

    async def cleanup(self) -> None: ...


class SimpleExecutionRuntime:
    """Lifecycle tracker for a single agent invocation."""

    def __init__(
        self,
        identifiers: ExecutionIdentifiers,
        execution_id: str | None = None,
    ) -> None:
        self._identifiers = identifiers
        self._execution_id = execution_id or IdGenerator.execution_id()
        self._created_at = time.monotonic()
        self._started_at: float | None = None
        self._ended_at: float | None = None
        self._running = False
        self._agent_name: str | None = None
        self._progress: dict[str, Any] = {}
        self._last_result: dict[str, Any] | None = None

    @property
    def execution_id(self) -> str:
        return self._execution_id

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def identifiers(self) -> ExecutionIdentifiers:
        return self._identifiers

    async def start_execution(self, agent_name: str) -> str:
        """Mark the invocation as running.

        Raises:
            AlreadyRunningError: If an execution is already running
        """
        if self._running:
            raise AlreadyRunningError(
                f"Execution already running for agent: {self._agent_name}",
                context={"execution_id": self._execution_id, "agent_name": self._agent_name},
            )

        self._running = True
        self._agent_name = agent_name
        self._started_at = time.monotonic()
        self._ended_at = None
        self._progress = {}

        logger.info(
            "execution_started",
            execution_id=self._execution_id,
            agent_name=agent_name,
            session_id=self._identifiers.session_id,
            thread_id=self._identifiers.thread_id,
        )
        return self._execution_id

    async def end_execution(
        self,
        success: bool,
        error: BaseException | None = None,
        output_summary: str | None = None,
    ) -> None:
        """Mark the invocation as finished.

        Raises:
            NotRunningError: If no execution is running
        """
        if not self._running:
            raise NotRunningError(
                "No execution running",
                context={"execution_id": self._execution_id},
            )

        self._running = False
        self._ended_at = time.monotonic()
        self._last_result = {
            "success": success,
            "error": str(error) if error else None,
            "output_summary": output_summary,
        }

        logger.info(
            "execution_ended",
            execution_id=self._execution_id,
            agent_name=self._agent_name,
            duration_ms=self._duration_ms(),
            success=success,
            error=str(error) if error else None,
        )

    def update_execution(self, **updates: Any) -> None:
        """Record progress (iteration, tools_used, current_thought, ...)."""
        if not self._running:
            logger.warning(
                "execution_update_ignored",
                execution_id=self._execution_id,
                reason="not_running",
            )
            return
        self._progress.update(updates)
        logger.debug("execution_updated", execution_id=self._execution_id, updates=list(updates))

    def get_execution_info(self) -> dict[str, Any]:
        return {
            "execution_id": self._execution_id,
            "is_running": self._running,
            "duration_ms": self._duration_ms(),
            "agent_name": self._agent_name,
            "progress": dict(self._progress),
            "last_result": self._last_result,
            "identifiers": {
                "session_id": self._identifiers.session_id,
                "tenant_id": self._identifiers.tenant_id,
                "thread_id": self._identifiers.thread_id,
            },
        }

    def get_summary(self) -> dict[str, Any]:
        status: SummaryStatus
        if self._running:
            status = "running"
        elif self._agent_name is not None:
            status = "completed"
        else:
            status = "idle"
        return {
            "execution_id": self._execution_id,
            "agent_name": self._agent_name,
            "status": status,
            "duration_ms": self._duration_ms(),
        }

    async def health(self) -> dict[str, Any]:
        return {"status": "healthy", "details": self.get_execution_info()}

    async def cleanup(self) -> None:
        """Force-end a running execution."""
        if self._running:
            await self.end_execution(
                success=False,
                error=RuntimeError("Forced cleanup"),
                output_summary="Execution terminated by cleanup",
            )
        logger.debug("execution_runtime_cleaned", execution_id=self._execution_id)

    def _duration_ms(self) -> int:
        start = self._started_at if self._started_at is not None else self._created_at
        ended = self._ended_at is not None and not self._running
        end = self._ended_at if ended else time.monotonic()
        return int((end - start) * 1000)
