"""MemoryManager: the shared long-term memory facade.

One manager is shared by every runtime and agent context in a process. It is
never cleared by per-invocation cleanup.
"""

import asyncio
from typing import Any

from kodus_flow.config.models.context import MemoryConfig
from kodus_flow.memory.adapters import MemoryAdapter, create_memory_adapter
from kodus_flow.memory.models import MemoryItem, MemoryQuery
from kodus_flow.observability.logging import get_logger

logger = get_logger(__name__)


class MemoryManager:
    """Long-term pattern store consumed via store/query/is_healthy."""

    def __init__(
        self,
        config: MemoryConfig | None = None,
        adapter: MemoryAdapter | None = None,
    ) -> None:
        self._config = config or MemoryConfig()
        self._adapter = adapter or create_memory_adapter(
            self._config.adapter_type, max_items=self._config.max_items
        )
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._stored_count = 0

    async def initialize(self) -> None:
        """Initialize the adapter once; later calls are no-ops."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            await self._adapter.initialize()
            self._initialized = True
            logger.info("memory_manager_initialized", adapter_type=self._config.adapter_type)

    async def store(
        self,
        content: Any,
        type: str = "general",
        key: str = "",
        entity_id: str | None = None,
        session_id: str | None = None,
        tenant_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> MemoryItem:
        """Store a memory item and return it."""
        await self.initialize()
        item = MemoryItem(
            key=key,
            value=content,
            type=type,
            entity_id=entity_id,
            session_id=session_id,
            tenant_id=tenant_id,
            metadata=metadata or {},
        )
        await self._adapter.store(item)
        self._stored_count += 1
        logger.debug("memory_item_stored", item_id=item.id, type=type, session_id=session_id)
        return item

    async def query(self, filter: MemoryQuery | None = None) -> list[MemoryItem]:
        await self.initialize()
        return await self._adapter.query(filter or MemoryQuery())

    async def retrieve(self, item_id: str) -> MemoryItem | None:
        await self.initialize()
        return await self._adapter.retrieve(item_id)

    async def delete(self, item_id: str) -> bool:
        await self.initialize()
        return await self._adapter.delete(item_id)

    async def is_healthy(self) -> bool:
        """Adapter health; any adapter exception counts as unhealthy."""
        try:
            return await self._adapter.is_healthy()
        except Exception as e:
            logger.warning("memory_health_check_failed", error=str(e))
            return False

    async def get_stats(self) -> dict[str, Any]:
        return {
            "adapter_type": self._config.adapter_type,
            "initialized": self._initialized,
            "total_items": await self._adapter.count(),
            "stored_since_start": self._stored_count,
        }

    async def cleanup(self) -> None:
        await self._adapter.clear()
        logger.info("memory_manager_cleaned")
