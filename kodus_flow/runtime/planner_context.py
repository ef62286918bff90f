"""Planner execution context and execution-hint derivation."""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field

from kodus_flow.planning.models import (
    ActionResult,
    AgentThought,
    HistoryEntry,
    ResultAnalysis,
)

Urgency = Literal["high", "medium", "low"]


class UserPreferenceHints(BaseModel):
    preferred_style: Literal["formal", "casual", "technical"] = "technical"
    verbosity: Literal["concise", "detailed", "verbose"] = "verbose"
    risk_tolerance: Literal["conservative", "moderate", "aggressive"] = "moderate"


class ExecutionHints(BaseModel):
    """Signals derived from the input and enriched context."""

    current_goal: str | None = None
    user_urgency: Urgency = "medium"
    user_preferences: UserPreferenceHints | None = None
    environment_state: dict[str, Any] | None = None


class PlannerResult(BaseModel):
    """Summary derived from a planner context's accumulated history."""

    success: bool
    result: ActionResult | None = None
    iterations: int
    total_time_ms: int
    thoughts: list[AgentThought] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


def classify_urgency(text: str) -> Urgency:
    lowered = text.lower()
    if "urgent" in lowered or "quickly" in lowered:
        return "high"
    if "when possible" in lowered or "eventually" in lowered:
        return "low"
    return "medium"


def derive_execution_hints(input: str, enriched: dict[str, Any]) -> ExecutionHints:
    """Build execution hints from the raw input and enriched context.

    `enriched` may contain agent_identity (dict), user_preferences and
    execution_state, as produced by ExecutionRuntime.
    """
    identity: dict[str, Any] = enriched.get("agent_identity") or {}
    hints = ExecutionHints(user_urgency=classify_urgency(input))

    if identity.get("goal"):
        hints.current_goal = identity["goal"]

    if identity or enriched.get("user_preferences"):
        style = identity.get("style")
        personality = identity.get("personality") or ""
        hints.user_preferences = UserPreferenceHints(
            preferred_style=style if style in ("formal", "casual") else "technical",
            verbosity=(
                "concise"
                if "concise" in personality
                else "detailed" if "detailed" in personality else "verbose"
            ),
            risk_tolerance=(
                "conservative"
                if "careful" in personality
                else "aggressive" if "bold" in personality else "moderate"
            ),
        )

    state = enriched.get("execution_state")
    if isinstance(state, dict) and state:
        hints.environment_state = state

    return hints


@dataclass
class PlannerExecutionContext:
    """Planning view of an execution: input, history and derived hints."""

    input: str
    history: list[HistoryEntry] = field(default_factory=list)
    iterations: int = 0
    max_iterations: int = 10
    planner_metadata: dict[str, Any] = field(default_factory=dict)
    execution_hints: ExecutionHints = field(default_factory=ExecutionHints)
    available_tools: list[dict[str, Any]] = field(default_factory=list)
    enriched_context: dict[str, Any] = field(default_factory=dict)
    is_complete: bool = False
    start_time: float = field(default_factory=time.monotonic)

    def update(
        self,
        thought: AgentThought,
        result: ActionResult,
        observation: ResultAnalysis,
    ) -> None:
        """Record one iteration."""
        self.history.append(
            HistoryEntry(
                thought=thought,
                action=thought.action,
                result=result,
                observation=observation,
            )
        )

    def get_current_situation(self) -> str:
        """The last three actions and their results, one per line."""
        lines = []
        for entry in self.history[-3:]:
            action = json.dumps(entry.action.model_dump(mode="json", exclude_none=True))
            result = json.dumps(entry.result.model_dump(mode="json", exclude_none=True))
            lines.append(f"Action: {action} -> Result: {result}")
        return "\n".join(lines)

    def get_final_result(self) -> PlannerResult:
        last = self.history[-1] if self.history else None
        return PlannerResult(
            success=last.observation.is_complete if last else False,
            result=last.result if last else None,
            iterations=self.iterations,
            total_time_ms=int((time.monotonic() - self.start_time) * 1000),
            thoughts=[entry.thought for entry in self.history],
            metadata={
                "planner_type": self.planner_metadata.get("planner_type"),
                "tool_calls_count": sum(
                    1 for entry in self.history if entry.action.type == "tool_call"
                ),
                "errors_count": sum(1 for entry in self.history if entry.result.type == "error"),
            },
        )
