"""Context versioning and execution trace models.

Versions and steps are frozen: once appended they are never mutated, only
superseded by later versions.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalise to aware UTC; naive datetimes are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UTCDatetime = Annotated[datetime, AfterValidator(as_utc)]


class ContextSource(str, Enum):
    """Who produced a context mutation."""

    SYSTEM = "system"
    AGENT = "agent"
    TOOL = "tool"
    USER = "user"
    LLM = "llm"


class ContextVersion(BaseModel):
    """Immutable record of one mutation to execution state."""

    model_config = ConfigDict(frozen=True)

    id: str
    execution_id: str
    version: int = Field(..., ge=1, description="Per-execution sequence number")
    source: ContextSource
    timestamp: UTCDatetime
    data: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    storage: dict[str, Any] = Field(default_factory=dict, description="Storage routing hints")
    links: dict[str, Any] = Field(default_factory=dict)

    @staticmethod
    def make_id(execution_id: str, version: int, source: ContextSource, timestamp: datetime) -> str:
        return f"{execution_id}_v{version}_{source.value}_{int(timestamp.timestamp() * 1000)}"


class ExecutionStep(BaseModel):
    """Audit-trail entry derived from a ContextVersion."""

    model_config = ConfigDict(frozen=True)

    step: int = Field(..., ge=1)
    execution_id: str
    component: ContextSource
    action: str
    version_id: str
    status: Literal["success", "error"]
    timestamp: UTCDatetime
    data: Any = None
    duration: float | None = None


class ContextValueUpdate(BaseModel):
    """Typed key/value entry used to enrich planner and tool contexts."""

    model_config = ConfigDict(frozen=True)

    type: str
    key: str
    value: Any = None
    timestamp: UTCDatetime = Field(default_factory=utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)


class TimeRange(BaseModel):
    start: UTCDatetime
    end: UTCDatetime


class ContextQuery(BaseModel):
    """Filter and ranking hints for ExecutionRuntime.query()."""

    source: list[ContextSource] | None = None
    execution_id: str | None = None
    agent_name: str | None = None
    success: bool | None = None
    time_range: TimeRange | None = None
    limit: int | None = Field(default=None, gt=0)
    offset: int = Field(default=0, ge=0)


class ContextResult(BaseModel):
    """A matched version with its relevance score."""

    version: ContextVersion
    data: Any = None
    relevance: float


class ExecutionEvent(BaseModel):
    """Something observed during execution, recorded as a version."""

    type: str
    source: ContextSource
    execution_id: str
    data: Any = None
    timestamp: UTCDatetime = Field(default_factory=utcnow)


class ExecutionResult(BaseModel):
    """Final outcome passed to ExecutionRuntime.end_execution()."""

    status: Literal["success", "error", "cancelled", "timeout"]
    duration: float = Field(default=0.0, description="Seconds")
    output: Any = None
    error: str | None = None


HealthState = Literal["healthy", "degraded", "unhealthy"]


class ServiceHealth(BaseModel):
    status: HealthState
    response_time_ms: float = 0.0
    error_rate: float = 0.0
    last_check: datetime = Field(default_factory=utcnow)
    details: dict[str, Any] = Field(default_factory=dict)


class HealthStatus(BaseModel):
    overall: HealthState
    services: dict[str, ServiceHealth]
    metrics: dict[str, Any] = Field(default_factory=dict)


def determine_overall_health(services: list[ServiceHealth]) -> HealthState:
    """Worst status wins: unhealthy over degraded over healthy."""
    statuses = {service.status for service in services}
    if "unhealthy" in statuses:
        return "unhealthy"
    if "degraded" in statuses:
        return "degraded"
    return "healthy"
