"""Long-term memory data models."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from kodus_flow.utils.ids import IdGenerator


class MemoryItem(BaseModel):
    """A single stored memory (tool usage pattern, execution pattern, fact)."""

    id: str = Field(default_factory=IdGenerator.memory_id)
    key: str = ""
    value: Any = None
    type: str = "general"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    entity_id: str | None = None
    session_id: str | None = None
    tenant_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class MemoryQuery(BaseModel):
    """Filter for memory lookups. Unset fields match everything."""

    type: str | None = None
    key: str | None = None
    entity_id: str | None = None
    session_id: str | None = None
    tenant_id: str | None = None
    since: datetime | None = None
    limit: int | None = Field(default=None, gt=0)

    def matches(self, item: MemoryItem) -> bool:
        if self.type is not None and item.type != self.type:
            return False
        if self.key is not None and item.key != self.key:
            return False
        if self.entity_id is not None and item.entity_id != self.entity_id:
            return False
        if self.session_id is not None and item.session_id != self.session_id:
            return False
        if self.tenant_id is not None and item.tenant_id != self.tenant_id:
            return False
        if self.since is not None and item.timestamp < self.since:
            return False
        return True
