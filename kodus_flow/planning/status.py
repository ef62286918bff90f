"""Unified status vocabulary and the legal transition table.

Plans, plan steps and agent executions share one status enum. Every status
change goes through validate_transition(); callers never assign a status
without it.
"""

from enum import Enum

from kodus_flow.errors import InvalidTransitionError


class Status(str, Enum):
    """Status of a plan, step or agent execution."""

    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    REPLANNING = "replanning"
    WAITING_INPUT = "waiting_input"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    REWRITING = "rewriting"
    OBSERVING = "observing"
    PARALLEL = "parallel"
    STAGNATED = "stagnated"
    TIMEOUT = "timeout"
    DEADLOCK = "deadlock"
    FINAL_ANSWER_RESULT = "final_answer_result"


_RESUMABLE = frozenset({Status.EXECUTING, Status.FAILED, Status.CANCELLED})
_RECOVERABLE = frozenset({Status.REPLANNING, Status.CANCELLED})

VALID_STATUS_TRANSITIONS: dict[Status, frozenset[Status]] = {
    Status.PENDING: frozenset({Status.EXECUTING, Status.CANCELLED, Status.SKIPPED}),
    Status.EXECUTING: frozenset({
        Status.COMPLETED,
        Status.FAILED,
        Status.REPLANNING,
        Status.WAITING_INPUT,
        Status.PAUSED,
        Status.CANCELLED,
        Status.REWRITING,
        Status.OBSERVING,
        Status.PARALLEL,
        Status.STAGNATED,
        Status.TIMEOUT,
        Status.DEADLOCK,
    }),
    Status.FAILED: _RECOVERABLE,
    Status.REPLANNING: frozenset({Status.EXECUTING, Status.FAILED, Status.CANCELLED}),
    Status.WAITING_INPUT: frozenset({Status.EXECUTING, Status.CANCELLED}),
    Status.PAUSED: frozenset({Status.EXECUTING, Status.CANCELLED}),
    Status.REWRITING: _RESUMABLE,
    Status.OBSERVING: _RESUMABLE,
    Status.PARALLEL: _RESUMABLE,
    Status.STAGNATED: _RESUMABLE,
    Status.TIMEOUT: _RECOVERABLE,
    Status.DEADLOCK: _RECOVERABLE,
    # Terminal
    Status.COMPLETED: frozenset(),
    Status.CANCELLED: frozenset(),
    Status.SKIPPED: frozenset(),
    Status.FINAL_ANSWER_RESULT: frozenset(),
}

TERMINAL_STATUSES: frozenset[Status] = frozenset(
    status for status, targets in VALID_STATUS_TRANSITIONS.items() if not targets
)


def is_valid_status_transition(from_status: Status | str, to_status: Status | str) -> bool:
    """True if from_status -> to_status is in the transition table.

    Unknown status strings are never valid.
    """
    try:
        source = Status(from_status)
        target = Status(to_status)
    except ValueError:
        return False
    return target in VALID_STATUS_TRANSITIONS[source]


def validate_transition(from_status: Status | str, to_status: Status | str) -> Status:
    """Return the target status, or raise InvalidTransitionError."""
    if not is_valid_status_transition(from_status, to_status):
        raise InvalidTransitionError(str(_value(from_status)), str(_value(to_status)))
    return Status(to_status)


def is_terminal_status(status: Status | str) -> bool:
    try:
        return Status(status) in TERMINAL_STATUSES
    except ValueError:
        return False


def _value(status: Status | str) -> str:
    return status.value if isinstance(status, Status) else status
