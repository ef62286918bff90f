"""Tests for SimpleExecutionRuntime."""

import pytest

from kodus_flow.errors import AlreadyRunningError, NotRunningError
from kodus_flow.runtime.lifecycle import (
    ExecutionIdentifiers,
    ExecutionLifecycle,
    SimpleExecutionRuntime,
)


@pytest.fixture
def lifecycle() -> SimpleExecutionRuntime:
    return SimpleExecutionRuntime(
        ExecutionIdentifiers(session_id="s1", tenant_id="default", thread_id="t1"),
        execution_id="exec-1",
    )


class TestSimpleExecutionRuntime:
    """Tests for the per-invocation lifecycle."""

    def test_satisfies_protocol(self, lifecycle: SimpleExecutionRuntime) -> None:
        assert isinstance(lifecycle, ExecutionLifecycle)

    async def test_start_end(self, lifecycle: SimpleExecutionRuntime) -> None:
        assert lifecycle.get_summary()["status"] == "idle"
        assert await lifecycle.start_execution("Echo") == "exec-1"
        assert lifecycle.get_summary()["status"] == "running"

        await lifecycle.end_execution(success=True, output_summary="done")
        summary = lifecycle.get_summary()
        assert summary["status"] == "completed"
        assert summary["agent_name"] == "Echo"
        assert lifecycle.get_execution_info()["last_result"] == {
            "success": True,
            "error": None,
            "output_summary": "done",
        }

    async def test_double_start(self, lifecycle: SimpleExecutionRuntime) -> None:
        await lifecycle.start_execution("Echo")
        with pytest.raises(AlreadyRunningError):
            await lifecycle.start_execution("Echo")

    async def test_end_when_idle(self, lifecycle: SimpleExecutionRuntime) -> None:
        with pytest.raises(NotRunningError):
            await lifecycle.end_execution(success=True)

    async def test_update_only_while_running(self, lifecycle: SimpleExecutionRuntime) -> None:
        lifecycle.update_execution(iteration=1)
        assert lifecycle.get_execution_info()["progress"] == {}

        await lifecycle.start_execution("Echo")
        lifecycle.update_execution(iteration=2, tools_used=1)
        assert lifecycle.get_execution_info()["progress"] == {"iteration": 2, "tools_used": 1}

    async def test_cleanup_force_ends(self, lifecycle: SimpleExecutionRuntime) -> None:
        await lifecycle.start_execution("Echo")
        await lifecycle.cleanup()
        assert not lifecycle.is_running
        assert lifecycle.get_execution_info()["last_result"]["error"] == "Forced cleanup"
        await lifecycle.cleanup()

    async def test_health(self, lifecycle: SimpleExecutionRuntime) -> None:
        health = await lifecycle.health()
        assert health["status"] == "healthy"
        assert health["details"]["identifiers"]["thread_id"] == "t1"
