"""Execution plan and plan step models.

Steps form a DAG via `dependencies`. Status changes are validated against
the unified transition table.
"""

import time
from typing import Any, Literal

from pydantic import BaseModel, Field

from kodus_flow.planning.status import Status, validate_transition

StepType = Literal["action", "decision", "verification", "delegation", "aggregation", "checkpoint"]


def create_step_id(name: str) -> str:
    return name if name.startswith("step-") else f"step-{name}"


def create_plan_id(name: str) -> str:
    return name if name.startswith("plan-") else f"plan-{name}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class PlanStep(BaseModel):
    """One node in an execution plan."""

    id: str
    description: str
    type: StepType | None = None
    tool: str | None = None
    agent: str | None = None
    arguments: dict[str, Any] = Field(default_factory=dict)
    dependencies: list[str] = Field(default_factory=list)
    status: Status = Status.PENDING
    parallel: bool = False
    optional: bool = False
    retry_count: int = 0
    max_retries: int = 0
    result: Any = None
    error: str | None = None
    start_time: int | None = None
    end_time: int | None = None
    reasoning: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def transition_to(self, status: Status | str) -> None:
        """Move to a new status, stamping start/end times."""
        target = validate_transition(self.status, status)
        if target == Status.EXECUTING and self.start_time is None:
            self.start_time = _now_ms()
        if target in (Status.COMPLETED, Status.FAILED, Status.CANCELLED, Status.SKIPPED):
            self.end_time = _now_ms()
        self.status = target

    @property
    def duration(self) -> int | None:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time


class ExecutionPlan(BaseModel):
    """A goal decomposed into dependent steps."""

    id: str
    strategy: str
    goal: str
    reasoning: str = ""
    steps: list[PlanStep] = Field(default_factory=list)
    status: Status = Status.PENDING
    current_step_index: int = 0
    created_at: int = Field(default_factory=_now_ms)
    updated_at: int = Field(default_factory=_now_ms)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def transition_to(self, status: Status | str) -> None:
        self.status = validate_transition(self.status, status)
        self.updated_at = _now_ms()

    def get_step(self, step_id: str) -> PlanStep | None:
        return next((step for step in self.steps if step.id == step_id), None)

    def get_ready_steps(self) -> list[PlanStep]:
        """Pending steps whose dependencies have all completed.

        A step with a failed dependency is never ready.
        """
        status_by_id = {step.id: step.status for step in self.steps}
        return [
            step
            for step in self.steps
            if step.status == Status.PENDING
            and all(status_by_id.get(dep) == Status.COMPLETED for dep in step.dependencies)
        ]

    def is_complete(self) -> bool:
        return all(
            step.status in (Status.COMPLETED, Status.SKIPPED)
            or (step.optional and step.status == Status.FAILED)
            for step in self.steps
        )

    def get_progress(self) -> dict[str, int]:
        total = len(self.steps)
        completed = sum(1 for s in self.steps if s.status == Status.COMPLETED)
        return {
            "total": total,
            "completed": completed,
            "failed": sum(1 for s in self.steps if s.status == Status.FAILED),
            "skipped": sum(1 for s in self.steps if s.status == Status.SKIPPED),
            "percentage": round(completed / total * 100) if total else 0,
        }
