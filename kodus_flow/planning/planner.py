"""Planners decide the next action from a planner execution context."""

import json
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError as PydanticValidationError

from kodus_flow.adapters.llm import LLMAdapter, LLMMessage
from kodus_flow.observability.logging import get_logger
from kodus_flow.planning.models import AgentAction, AgentThought
from kodus_flow.runtime.planner_context import PlannerExecutionContext

logger = get_logger(__name__)

REPLY_FORMAT = """Reply with a single JSON object:
{"reasoning": "<why>", "action": {"type": "tool_call", "tool_name": "<name>", "input": {...}}}
or
{"reasoning": "<why>", "action": {"type": "final_answer", "content": "<answer>"}}"""


@runtime_checkable
class Planner(Protocol):
    async def think(self, context: PlannerExecutionContext) -> AgentThought: ...


class LLMPlanner:
    """ReAct-style planner backed by an LLM adapter."""

    planner_type = "react"

    def __init__(self, llm: LLMAdapter) -> None:
        self._llm = llm

    async def think(self, context: PlannerExecutionContext) -> AgentThought:
        messages = self.build_messages(context)
        response = await self._llm.call(messages)
        thought = parse_thought(response.content)
        logger.debug(
            "planner_thought",
            action_type=thought.action.type,
            tool_name=thought.action.tool_name,
            iteration=context.iterations,
        )
        return thought

    def build_messages(self, context: PlannerExecutionContext) -> list[LLMMessage]:
        identity: dict[str, Any] = context.enriched_context.get("agent_identity") or {}
        system_lines = []
        if identity.get("system_prompt"):
            system_lines.append(identity["system_prompt"])
        for field in ("role", "goal", "description", "expertise", "personality", "style"):
            value = identity.get(field)
            if value:
                system_lines.append(f"{field.capitalize()}: {_as_text(value)}")
        if context.execution_hints.current_goal:
            system_lines.append(f"Current goal: {context.execution_hints.current_goal}")
        system_lines.append(f"Urgency: {context.execution_hints.user_urgency}")

        if context.available_tools:
            system_lines.append("Available tools:")
            for tool in context.available_tools:
                schema = json.dumps(tool.get("schema") or {})
                system_lines.append(f"- {tool['name']}: {tool.get('description') or ''} {schema}")
        system_lines.append(REPLY_FORMAT)

        user_lines = [f"Input: {context.input}"]
        situation = context.get_current_situation()
        if situation:
            user_lines.append(f"Previous steps:\n{situation}")

        return [
            LLMMessage(role="system", content="\n".join(system_lines)),
            LLMMessage(role="user", content="\n".join(user_lines)),
        ]


def parse_thought(text: str) -> AgentThought:
    """Parse an LLM reply; anything that is not a valid action is a final answer."""
    payload = _extract_json(text)
    if isinstance(payload, dict) and isinstance(payload.get("action"), dict):
        try:
            return AgentThought(
                reasoning=str(payload.get("reasoning", "")),
                action=AgentAction.model_validate(payload["action"]),
            )
        except PydanticValidationError:
            logger.debug("planner_reply_invalid_action")
    return AgentThought(
        reasoning="Direct response",
        action=AgentAction(type="final_answer", content=text),
        metadata={"parsed": False},
    )


def _extract_json(text: str) -> Any:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.strip("`")
        if stripped.startswith("json"):
            stripped = stripped[4:]
    try:
        return json.loads(stripped)
    except ValueError:
        return None


def _as_text(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)
