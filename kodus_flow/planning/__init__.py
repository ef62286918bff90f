"""Planning primitives: status machine, plans, planner protocol."""

from kodus_flow.planning.models import (
    ActionResult,
    AgentAction,
    AgentThought,
    HistoryEntry,
    ResultAnalysis,
)
from kodus_flow.planning.plan import ExecutionPlan, PlanStep
from kodus_flow.planning.status import (
    TERMINAL_STATUSES,
    VALID_STATUS_TRANSITIONS,
    Status,
    is_terminal_status,
    is_valid_status_transition,
    validate_transition,
)

__all__ = [
    "ActionResult",
    "AgentAction",
    "AgentThought",
    "ExecutionPlan",
    "HistoryEntry",
    "PlanStep",
    "ResultAnalysis",
    "Status",
    "TERMINAL_STATUSES",
    "VALID_STATUS_TRANSITIONS",
    "is_terminal_status",
    "is_valid_status_transition",
    "validate_transition",
]
