"""Think/act/observe data models exchanged between planners and agents."""

from typing import Any, Literal

from pydantic import BaseModel, Field

ActionType = Literal["tool_call", "final_answer", "need_more_info"]
ActionResultType = Literal["tool_result", "final_answer", "error", "needs_replan"]


class AgentAction(BaseModel):
    """What the planner decided to do next."""

    type: ActionType
    tool_name: str | None = None
    input: dict[str, Any] = Field(default_factory=dict)
    content: Any = None
    question: str | None = None


class AgentThought(BaseModel):
    """Planner output for one iteration."""

    reasoning: str = ""
    action: AgentAction
    metadata: dict[str, Any] = Field(default_factory=dict)


class ActionResult(BaseModel):
    """Outcome of executing an action."""

    type: ActionResultType
    content: Any = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ResultAnalysis(BaseModel):
    """Observation of an action result; decides whether the loop stops."""

    is_complete: bool
    is_successful: bool
    should_continue: bool
    feedback: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class HistoryEntry(BaseModel):
    """One completed think/act/observe iteration."""

    thought: AgentThought
    action: AgentAction
    result: ActionResult
    observation: ResultAnalysis
