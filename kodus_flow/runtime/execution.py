"""ExecutionRuntime: the per-thread engine behind agent executions.

One runtime holds three things for its thread:

- the lifecycle of the execution currently running on the thread;
- an append-only log of ContextVersion records plus the execution trace
  (one ExecutionStep per version) derived from it;
- a materialised map of typed context values used to enrich planner and tool
  contexts.

append() is the only way a version enters the log. Appends for the same
execution id are serialised by a per-execution asyncio.Lock, so version
numbers are strictly increasing with no gaps even when appends from several
sources interleave at await points.
"""

import asyncio
from collections.abc import Awaitable, Callable
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from kodus_flow.config.models.runtime import ExecutionRuntimeConfig
from kodus_flow.context.session import SessionService
from kodus_flow.errors import AlreadyRunningError, NotRunningError, UnknownContextPathError
from kodus_flow.memory.manager import MemoryManager
from kodus_flow.observability.logging import get_logger
from kodus_flow.observability.metrics import CONTEXT_VERSIONS_APPENDED
from kodus_flow.planning.models import (
    ActionResult,
    AgentAction,
    AgentThought,
    HistoryEntry,
    ResultAnalysis,
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
    as_utc,
    determine_overall_health,
    utcnow,
)
from kodus_flow.runtime.planner_context import PlannerExecutionContext, derive_execution_hints

if TYPE_CHECKING:
    from datetime import datetime

    from kodus_flow.context.models import AgentContext

logger = get_logger(__name__)

DYNAMIC_CONTEXT_ID = "dynamic-context"

PersistVersion = Callable[[ContextVersion], Awaitable[None]]

_TOOL_STAT_FIELDS = frozenset(
    {"usage_count", "last_success", "error_rate", "avg_response_time", "last_used"}
)


class ExecutionRuntime:
    """Lifecycle, context versioning and enrichment for one thread.

    Args:
        memory_manager: Shared long-term memory, used for health only
        config: Retention and ranking settings
        session_service: Session store, used for health only
        persist_version: Optional async sink called with every version before
            it is committed in memory. If it raises, the append fails and
            nothing is recorded.
    """

    def __init__(
        self,
        memory_manager: MemoryManager,
        config: ExecutionRuntimeConfig | None = None,
        session_service: SessionService | None = None,
        persist_version: PersistVersion | None = None,
    ) -> None:
        self._memory = memory_manager
        self._config = config or ExecutionRuntimeConfig()
        self._sessions = session_service
        self._persist_version = persist_version

        self._versions: dict[str, ContextVersion] = {}
        self._executions: dict[str, list[ExecutionStep]] = {}
        self._version_counters: dict[str, int] = {}
        self._append_locks: dict[str, asyncio.Lock] = {}
        self._context_values: dict[str, dict[str, ContextValueUpdate]] = {}

        self._running = False
        self._current_execution_id: str | None = None
        self._agent_name: str | None = None
        self._started_at: "datetime | None" = None

    @property
    def config(self) -> ExecutionRuntimeConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def current_execution_id(self) -> str | None:
        return self._current_execution_id

    # Lifecycle

    async def start_execution(
        self, execution_id: str, agent_context: "AgentContext"
    ) -> ContextVersion:
        """Register an execution and record `execution_started`.

        Raises:
            AlreadyRunningError: If an execution is already running on this runtime
        """
        if self._running:
            raise AlreadyRunningError(
                f"Execution already running: {self._current_execution_id}",
                context={
                    "running_execution_id": self._current_execution_id,
                    "requested_execution_id": execution_id,
                },
            )

        previous_execution_id = self._current_execution_id
        registered = execution_id not in self._executions
        self._running = True
        self._current_execution_id = execution_id
        self._agent_name = agent_context.agent_name
        self._started_at = utcnow()
        self._executions.setdefault(execution_id, [])

        try:
            version = await self.append(
                ContextSource.SYSTEM,
                {
                    "action": "execution_started",
                    "agent_name": agent_context.agent_name,
                    "thread_id": agent_context.thread_id,
                    "session_id": agent_context.session_id,
                    "correlation_id": agent_context.correlation_id,
                },
                execution_id=execution_id,
            )
        except Exception:
            self._running = False
            self._current_execution_id = previous_execution_id
            self._agent_name = None
            self._started_at = None
            if registered and not self._executions.get(execution_id):
                self._executions.pop(execution_id, None)
            raise

        logger.info(
            "runtime_execution_started",
            execution_id=execution_id,
            agent_name=agent_context.agent_name,
            thread_id=agent_context.thread_id,
        )
        return version

    async def end_execution(self, execution_id: str, result: ExecutionResult) -> ContextVersion:
        """Record `execution_ended` with duration and status.

        Raises:
            NotRunningError: If no execution (or a different one) is running
        """
        if not self._running or execution_id != self._current_execution_id:
            raise NotRunningError(
                f"Execution not running: {execution_id}",
                context={
                    "execution_id": execution_id,
                    "running_execution_id": self._current_execution_id if self._running else None,
                },
            )

        version = await self.append(
            ContextSource.SYSTEM,
            {
                "action": "execution_ended",
                "status": result.status,
                "output": result.output,
                "error": result.error,
            },
            execution_id=execution_id,
            metadata={
                "success": result.status == "success",
                "duration": result.duration,
            },
        )
        self._running = False

        logger.info(
            "runtime_execution_ended",
            execution_id=execution_id,
            agent_name=self._agent_name,
            status=result.status,
            duration=result.duration,
        )
        return version

    # Versioning

    async def append(
        self,
        source: ContextSource | str,
        data: Any,
        execution_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        timestamp: "datetime | None" = None,
    ) -> ContextVersion:
        """Record one context mutation as a new version.

        Either the version is stored and the trace updated, or (when the
        persistence sink raises) neither happens and the error propagates.
        """
        source = ContextSource(source)
        execution_id = self._resolve_execution_id(execution_id)
        lock = self._append_locks.setdefault(execution_id, asyncio.Lock())

        async with lock:
            number = self._version_counters.get(execution_id, 0) + 1
            ts = as_utc(timestamp) if timestamp is not None else utcnow()
            version_metadata = dict(metadata or {})
            if self._agent_name and execution_id == self._current_execution_id:
                version_metadata.setdefault("agent_name", self._agent_name)

            steps = self._executions.get(execution_id)
            previous = steps[-1].version_id if steps else None
            version = ContextVersion(
                id=ContextVersion.make_id(execution_id, number, source, ts),
                execution_id=execution_id,
                version=number,
                source=source,
                timestamp=ts,
                data=data,
                metadata=version_metadata,
                storage={"primary": "memory", "persisted": self._persist_version is not None},
                links={"previous_version_id": previous} if previous else {},
            )

            if self._persist_version is not None:
                await self._persist_version(version)

            self._versions[version.id] = version
            self._version_counters[execution_id] = number
            self._record_step(version)

        CONTEXT_VERSIONS_APPENDED.labels(source=source.value).inc()
        logger.debug(
            "context_version_appended",
            execution_id=execution_id,
            version=number,
            source=source.value,
        )
        return version

    async def observe(self, event: ExecutionEvent) -> ContextVersion:
        """Record an observed event as a version."""
        return await self.append(
            event.source,
            event.data,
            execution_id=event.execution_id,
            metadata={"event_type": event.type},
            timestamp=event.timestamp,
        )

    def get_versions(self, execution_id: str) -> list[ContextVersion]:
        """Stored versions for one execution, in version order."""
        return sorted(
            (v for v in self._versions.values() if v.execution_id == execution_id),
            key=lambda v: v.version,
        )

    def get_execution_trace(self, execution_id: str | None = None) -> list[ExecutionStep]:
        """Steps for one execution, or every step ordered by timestamp."""
        if execution_id is not None:
            return list(self._executions.get(execution_id, []))
        all_steps = [step for steps in self._executions.values() for step in steps]
        return sorted(all_steps, key=lambda step: step.timestamp)

    # Context values

    async def add_context_value(
        self,
        type: str,
        key: str,
        value: Any,
        metadata: dict[str, Any] | None = None,
        execution_id: str | None = None,
    ) -> ContextVersion:
        """Set a typed context value and record it as an agent version.

        The version is appended first; the value map only changes once the
        append has succeeded.
        """
        added_at = utcnow()
        version = await self.append(
            ContextSource.AGENT,
            {
                "type": "context_update",
                "context_type": type,
                "context_key": key,
                "value": value,
            },
            execution_id=execution_id,
            metadata={
                "source": "add_context_value",
                "added_at": added_at.isoformat(),
                **(metadata or {}),
            },
        )
        self._context_values.setdefault(type, {})[key] = ContextValueUpdate(
            type=type,
            key=key,
            value=value,
            timestamp=version.timestamp,
            metadata=metadata or {},
        )
        return version

    def get_context_value(self, type: str, key: str) -> Any:
        update = self._context_values.get(type, {}).get(key)
        return update.value if update else None

    def get_context_type(self, type: str) -> dict[str, Any]:
        return {key: update.value for key, update in self._context_values.get(type, {}).items()}

    def get_context_values(self) -> MappingProxyType:
        """Read-only snapshot of every context value, grouped by type."""
        return MappingProxyType(
            {type: MappingProxyType(dict(values)) for type, values in self._context_values.items()}
        )

    def get_agent_identity(self) -> Any:
        return self.get_context_value("agent", "identity")

    def get_user_context(self) -> dict[str, Any]:
        return self.get_context_type("user")

    def get_tool_results(self) -> list[Any]:
        return list(self.get_context_type("tools").values())

    def get_session_history(self) -> list[Any]:
        return self.get_context_value("session", "conversation") or []

    # Context building

    async def build_planner_context(
        self, input: str, agent_context: "AgentContext"
    ) -> PlannerExecutionContext:
        """Assemble the planning view of an execution.

        History is read from the `planner.history` state entry, falling back to
        the session conversation condensed into one synthetic entry.
        """
        history = await self._load_planner_history(agent_context)
        enriched = self._build_enriched_context(agent_context)
        tools = self._enhance_tools(agent_context.available_tools)
        hints = derive_execution_hints(input, enriched)

        context = PlannerExecutionContext(
            input=input,
            history=history,
            max_iterations=agent_context.execution_options.get(
                "max_iterations", self._config.max_planner_iterations
            ),
            planner_metadata={
                "thread": {"id": agent_context.thread_id},
                "agent_name": agent_context.agent_name,
                "correlation_id": agent_context.correlation_id,
                "tenant_id": agent_context.tenant_id,
                "session_id": agent_context.session_id,
                "execution_id": self._current_execution_id,
                "planner_type": agent_context.execution_options.get("planner", "react"),
            },
            execution_hints=hints,
            available_tools=tools,
            enriched_context=enriched,
        )

        logger.debug(
            "planner_context_built",
            agent_name=agent_context.agent_name,
            history_length=len(history),
            tools_enhanced=len(tools),
            context_types=list(self._context_values),
            user_urgency=hints.user_urgency,
        )
        return context

    async def build_tool_context(
        self, tool_name: str, agent_context: "AgentContext"
    ) -> dict[str, Any]:
        return {"tool_name": tool_name, "agent_context": agent_context}

    async def _load_planner_history(self, agent_context: "AgentContext") -> list[HistoryEntry]:
        stored = await agent_context.state.get("planner", "history")
        if stored:
            return [HistoryEntry.model_validate(entry) for entry in stored]

        conversation = await agent_context.conversation.get_history()
        if not conversation:
            return []

        exchanges = [
            {"input": entry.input, "output": entry.output, "agent_name": entry.agent_name}
            for entry in conversation
        ]
        action = AgentAction(type="final_answer", content=exchanges)
        return [
            HistoryEntry(
                thought=AgentThought(reasoning="Previous conversation context", action=action),
                action=action,
                result=ActionResult(type="final_answer", content=exchanges),
                observation=ResultAnalysis(
                    is_complete=True,
                    is_successful=True,
                    should_continue=False,
                    feedback="Conversation history loaded from session",
                ),
            )
        ]

    def _build_enriched_context(self, agent_context: "AgentContext") -> dict[str, Any]:
        enriched: dict[str, Any] = {}

        identity = self.get_context_value("agent", "identity")
        if identity is None and agent_context.agent_identity is not None:
            identity = agent_context.agent_identity.model_dump(exclude_none=True)
        if identity is not None:
            enriched["agent_identity"] = identity

        preferences = self.get_context_value("user", "preferences")
        if preferences is not None:
            enriched["user_preferences"] = preferences

        if "tools" in self._context_values:
            enriched["tool_results"] = self.get_tool_results()

        state = self.get_context_value("execution", "state")
        if state is not None:
            enriched["execution_state"] = state

        conversation = self.get_context_value("session", "conversation")
        if conversation is not None:
            enriched["conversation_history"] = conversation

        return enriched

    def _enhance_tools(self, tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
        enhanced = []
        for tool in tools:
            info = {
                "name": tool.get("name"),
                "description": tool.get("description"),
                "schema": tool.get("input_schema"),
                "categories": tool.get("categories", []),
                "dependencies": tool.get("dependencies", []),
                "usage_count": 0,
                "last_success": None,
                "error_rate": 0.0,
                "avg_response_time": 0.0,
                "last_used": None,
            }
            for key, update in self._context_values.get(f"tool:{info['name']}", {}).items():
                if key in _TOOL_STAT_FIELDS:
                    info[key] = update.value
            enhanced.append(info)
        return enhanced

    # Queries

    def get(self, path: str) -> Any:
        """Resolve a dotted path against the runtime.

        `execution.<id>`, `context.<type>.<key>` and `versions.<id>` are
        supported.

        Raises:
            UnknownContextPathError: If the path root is not one of the above
        """
        root, _, rest = path.partition(".")
        if root == "execution":
            return self.get_execution_trace(rest)
        if root == "context":
            type, _, key = rest.partition(".")
            return self.get_context_value(type, key)
        if root == "versions":
            return self.get_versions(rest)
        raise UnknownContextPathError(
            f"Unknown context path: {path}",
            context={"path": path, "root": root},
        )

    def query(self, filter: ContextQuery | None = None) -> list[ContextResult]:
        """Filter stored versions and rank them by decayed recency.

        relevance = max(min_relevance, 1 - age_hours / decay_hours), then x2
        when the filter's execution_id matches and x1.5 when its agent_name
        matches the version's agent_name metadata.
        """
        filter = filter or ContextQuery()
        now = utcnow()
        results = []

        for version in self._versions.values():
            if filter.source and version.source not in filter.source:
                continue
            if filter.execution_id and version.execution_id != filter.execution_id:
                continue
            if filter.success is not None and version.metadata.get("success") != filter.success:
                continue
            if filter.time_range and not (
                filter.time_range.start <= version.timestamp <= filter.time_range.end
            ):
                continue

            age_hours = (now - version.timestamp).total_seconds() / 3600
            relevance = max(
                self._config.min_relevance,
                1 - age_hours / self._config.relevance_decay_hours,
            )
            if filter.execution_id and version.execution_id == filter.execution_id:
                relevance *= 2.0
            if filter.agent_name and version.metadata.get("agent_name") == filter.agent_name:
                relevance *= 1.5

            results.append(ContextResult(version=version, data=version.data, relevance=relevance))

        results.sort(key=lambda r: r.relevance, reverse=True)
        end = filter.offset + filter.limit if filter.limit is not None else None
        return results[filter.offset:end]

    # Maintenance

    async def health(self) -> HealthStatus:
        """Aggregate session, state and memory health."""
        services = {
            "session": self._check_session_health(),
            "state": self._check_state_health(),
            "memory": await self._check_memory_health(),
        }
        return HealthStatus(
            overall=determine_overall_health(list(services.values())),
            services=services,
            metrics={
                "active_executions": len(self._executions),
                "versions_stored": len(self._versions),
                "tracked_counters": len(self._version_counters),
                "context_types": len(self._context_values),
                "is_running": self._running,
            },
        )

    async def cleanup(self) -> None:
        """Prune the version log and execution traces.

        Keeps the most recent versions by timestamp and the most recently
        registered executions. A version counter is dropped only once its
        execution has neither versions nor a trace left; the dynamic context
        and the running execution keep theirs.
        """
        versions_removed = 0
        if len(self._versions) > self._config.max_versions:
            newest_first = sorted(self._versions.values(), key=lambda v: v.timestamp, reverse=True)
            for version in newest_first[self._config.max_versions:]:
                del self._versions[version.id]
                versions_removed += 1

        executions_removed = 0
        overflow = len(self._executions) - self._config.max_executions
        if overflow > 0:
            evictable = [
                execution_id
                for execution_id in self._executions
                if not (self._running and execution_id == self._current_execution_id)
            ]
            for execution_id in evictable[:overflow]:
                del self._executions[execution_id]
                lock = self._append_locks.get(execution_id)
                if lock is not None and not lock.locked():
                    del self._append_locks[execution_id]
                executions_removed += 1

        live = {version.execution_id for version in self._versions.values()}
        live.update(self._executions)
        live.add(DYNAMIC_CONTEXT_ID)
        if self._running and self._current_execution_id:
            live.add(self._current_execution_id)
        counters_removed = 0
        for execution_id in [key for key in self._version_counters if key not in live]:
            del self._version_counters[execution_id]
            lock = self._append_locks.get(execution_id)
            if lock is not None and not lock.locked():
                del self._append_locks[execution_id]
            counters_removed += 1

        logger.info(
            "execution_runtime_cleaned",
            versions_removed=versions_removed,
            executions_removed=executions_removed,
            counters_removed=counters_removed,
            versions_retained=len(self._versions),
            executions_retained=len(self._executions),
        )

    def _resolve_execution_id(self, execution_id: str | None) -> str:
        if execution_id:
            return execution_id
        if self._running and self._current_execution_id:
            return self._current_execution_id
        return DYNAMIC_CONTEXT_ID

    def _record_step(self, version: ContextVersion) -> None:
        steps = self._executions.setdefault(version.execution_id, [])
        data = version.data if isinstance(version.data, dict) else {}
        steps.append(
            ExecutionStep(
                step=len(steps) + 1,
                execution_id=version.execution_id,
                component=version.source,
                action=data.get("action") or data.get("type") or "unknown",
                version_id=version.id,
                status="error" if version.metadata.get("success") is False else "success",
                timestamp=version.timestamp,
                data=version.data,
                duration=version.metadata.get("duration"),
            )
        )

    def _check_session_health(self) -> ServiceHealth:
        if self._sessions is None:
            return ServiceHealth(status="healthy", details={"configured": False})
        try:
            stats = self._sessions.get_session_stats()
        except Exception as e:
            logger.warning("session_health_check_failed", error=str(e))
            return ServiceHealth(status="unhealthy", error_rate=1.0, details={"error": str(e)})
        capacity = self._sessions.config.max_sessions
        status = "degraded" if stats["total"] >= capacity * 0.9 else "healthy"
        return ServiceHealth(status=status, details={"total": stats["total"], "capacity": capacity})

    def _check_state_health(self) -> ServiceHealth:
        stored = len(self._versions)
        status = "degraded" if stored >= self._config.max_versions else "healthy"
        return ServiceHealth(
            status=status,
            details={"versions_stored": stored, "max_versions": self._config.max_versions},
        )

    async def _check_memory_health(self) -> ServiceHealth:
        healthy = await self._memory.is_healthy()
        return ServiceHealth(status="healthy" if healthy else "unhealthy")
