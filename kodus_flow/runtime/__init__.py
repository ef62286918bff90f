"""Execution runtimes: per-thread versioning and per-invocation lifecycle."""

from kodus_flow.runtime.execution import DYNAMIC_CONTEXT_ID, ExecutionRuntime
from kodus_flow.runtime.lifecycle import (
    ExecutionIdentifiers,
    ExecutionLifecycle,
    SimpleExecutionRuntime,
)
from kodus_flow.runtime.models import (
    ContextQuery,
    ContextResult,
    ContextSource,
    ContextValueUpdate,
    ContextVersion,
    ExecutionEvent,
    ExecutionResult,
    ExecutionStep,
    HealthStatus,
    ServiceHealth,
    TimeRange,
)
from kodus_flow.runtime.planner_context import ExecutionHints, PlannerExecutionContext
from kodus_flow.runtime.registry import RuntimeRegistry
from kodus_flow.utils.ids import validate_thread_id

__all__ = [
    "ContextQuery",
    "ContextResult",
    "ContextSource",
    "ContextValueUpdate",
    "ContextVersion",
    "DYNAMIC_CONTEXT_ID",
    "ExecutionEvent",
    "ExecutionHints",
    "ExecutionIdentifiers",
    "ExecutionLifecycle",
    "ExecutionResult",
    "ExecutionRuntime",
    "ExecutionStep",
    "HealthStatus",
    "PlannerExecutionContext",
    "RuntimeRegistry",
    "ServiceHealth",
    "SimpleExecutionRuntime",
    "TimeRange",
    "validate_thread_id",
]
