"""Tests for the LLM planner."""

import json

from kodus_flow.adapters.llm import LLMResponse
from kodus_flow.planning.planner import LLMPlanner, parse_thought
from kodus_flow.runtime.planner_context import ExecutionHints, PlannerExecutionContext
from tests.conftest import ScriptedLLM


class TestParseThought:
    """Tests for parse_thought."""

    def test_tool_call_reply(self) -> None:
        reply = json.dumps({
            "reasoning": "need data",
            "action": {"type": "tool_call", "tool_name": "search", "input": {"q": "x"}},
        })
        thought = parse_thought(reply)
        assert thought.reasoning == "need data"
        assert thought.action.type == "tool_call"
        assert thought.action.tool_name == "search"
        assert thought.action.input == {"q": "x"}

    def test_fenced_json(self) -> None:
        reply = '```json\n{"reasoning": "done", "action": {"type": "final_answer", "content": "42"}}\n```'
        thought = parse_thought(reply)
        assert thought.action.type == "final_answer"
        assert thought.action.content == "42"

    def test_plain_text_is_final_answer(self) -> None:
        thought = parse_thought("just text")
        assert thought.action.type == "final_answer"
        assert thought.action.content == "just text"
        assert thought.metadata == {"parsed": False}

    def test_invalid_action_type_is_final_answer(self) -> None:
        reply = json.dumps({"action": {"type": "dance"}})
        assert parse_thought(reply).action.content == reply


class TestLLMPlanner:
    """Tests for LLMPlanner prompt building."""

    async def test_prompt_includes_identity_and_tools(self) -> None:
        llm = ScriptedLLM(["ok"])
        context = PlannerExecutionContext(
            input="find the bug",
            execution_hints=ExecutionHints(current_goal="fix bugs", user_urgency="high"),
            available_tools=[{"name": "search", "description": "Search code", "schema": {"type": "object"}}],
            enriched_context={"agent_identity": {"role": "debugger", "expertise": ["python", "asyncio"]}},
        )
        thought = await LLMPlanner(llm).think(context)

        system, user = llm.calls[0]
        assert "Role: debugger" in system.content
        assert "Expertise: python, asyncio" in system.content
        assert "Current goal: fix bugs" in system.content
        assert "Urgency: high" in system.content
        assert "- search: Search code" in system.content
        assert user.content == "Input: find the bug"
        assert thought.action.content == "ok"

    async def test_llm_response_type(self) -> None:
        assert LLMResponse(content="x").metadata == {}
