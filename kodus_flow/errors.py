"""Error hierarchy for kodus_flow.

All engine components raise subclasses of KodusFlowError. Each error carries a
stable code so callers (and the orchestrator envelope) can classify failures
without matching on message text.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes surfaced to callers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_THREAD_ID = "INVALID_THREAD_ID"
    AGENT_IDENTITY_INVALID = "AGENT_IDENTITY_INVALID"
    AGENT_ERROR = "AGENT_ERROR"
    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    ENGINE_AGENT_INITIALIZATION_FAILED = "ENGINE_AGENT_INITIALIZATION_FAILED"
    EXECUTION_ALREADY_RUNNING = "EXECUTION_ALREADY_RUNNING"
    EXECUTION_NOT_RUNNING = "EXECUTION_NOT_RUNNING"
    EXECUTION_TIMEOUT = "EXECUTION_TIMEOUT"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    TOOL_ERROR = "TOOL_ERROR"
    CONTEXT_PATH_UNKNOWN = "CONTEXT_PATH_UNKNOWN"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    STATE_LIMIT_EXCEEDED = "STATE_LIMIT_EXCEEDED"
    MCP_ERROR = "MCP_ERROR"


class KodusFlowError(Exception):
    """Base exception for all kodus_flow errors."""

    default_code: ErrorCode = ErrorCode.AGENT_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        context: dict[str, Any] | None = None,
        recoverable: bool = False,
        retryable: bool = False,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context = context or {}
        self.recoverable = recoverable
        self.retryable = retryable
        self.cause = cause
        self.timestamp = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logging and result envelopes."""
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "context": self.context,
            "recoverable": self.recoverable,
            "retryable": self.retryable,
            "timestamp": self.timestamp.isoformat(),
        }


class ValidationError(KodusFlowError):
    """Raised on malformed input, before any state is mutated."""

    default_code = ErrorCode.VALIDATION_ERROR


class InvalidThreadIdError(ValidationError):
    """Raised when a thread identifier is empty or contains illegal characters."""

    default_code = ErrorCode.INVALID_THREAD_ID


class InvalidIdentityError(ValidationError):
    """Raised when an agent identity has none of role/goal/description/expertise."""

    default_code = ErrorCode.AGENT_IDENTITY_INVALID


class StateLimitError(ValidationError):
    """Raised when working memory namespace caps would be exceeded."""

    default_code = ErrorCode.STATE_LIMIT_EXCEEDED


class EngineError(KodusFlowError):
    """Generic engine failure with an explicit code."""

    pass


class AgentInitializationError(EngineError):
    """Raised when the orchestrator cannot be built from its inputs."""

    default_code = ErrorCode.ENGINE_AGENT_INITIALIZATION_FAILED


class AlreadyRunningError(EngineError):
    """Raised when starting an execution while another is running."""

    default_code = ErrorCode.EXECUTION_ALREADY_RUNNING


class NotRunningError(EngineError):
    """Raised when ending an execution that was never started."""

    default_code = ErrorCode.EXECUTION_NOT_RUNNING


class ExecutionTimeoutError(EngineError):
    """Raised when a dispatched call exceeds its deadline."""

    default_code = ErrorCode.EXECUTION_TIMEOUT

    def __init__(self, message: str, timeout_seconds: float, **kwargs: Any) -> None:
        super().__init__(message, retryable=True, **kwargs)
        self.timeout_seconds = timeout_seconds


class AgentNotFoundError(EngineError):
    """Raised when an agent name is not registered."""

    default_code = ErrorCode.AGENT_NOT_FOUND

    def __init__(self, agent_name: str) -> None:
        super().__init__(
            f"Agent '{agent_name}' not found",
            context={"agent_name": agent_name},
        )
        self.agent_name = agent_name


class ToolNotFoundError(EngineError):
    """Raised when a tool name is not registered."""

    default_code = ErrorCode.TOOL_NOT_FOUND

    def __init__(self, tool_name: str) -> None:
        super().__init__(
            f"Tool '{tool_name}' not found",
            context={"tool_name": tool_name},
        )
        self.tool_name = tool_name


class UnknownContextPathError(EngineError):
    """Raised when a context path does not start with a known root."""

    default_code = ErrorCode.CONTEXT_PATH_UNKNOWN


class InvalidTransitionError(EngineError):
    """Raised when a status change is not in the transition table."""

    default_code = ErrorCode.INVALID_STATUS_TRANSITION

    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(
            f"Invalid status transition: {from_status} -> {to_status}",
            context={"from": from_status, "to": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status
