"""Memory storage adapters."""

from abc import ABC, abstractmethod

from kodus_flow.errors import ValidationError
from kodus_flow.memory.models import MemoryItem, MemoryQuery
from kodus_flow.observability.logging import get_logger

logger = get_logger(__name__)


class MemoryAdapter(ABC):
    """Abstract interface for memory persistence backends."""

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections or allocate resources."""
        pass

    @abstractmethod
    async def store(self, item: MemoryItem) -> None:
        """Persist an item, replacing any item with the same id."""
        pass

    @abstractmethod
    async def retrieve(self, item_id: str) -> MemoryItem | None:
        pass

    @abstractmethod
    async def query(self, filter: MemoryQuery) -> list[MemoryItem]:
        """Return matching items, newest first."""
        pass

    @abstractmethod
    async def delete(self, item_id: str) -> bool:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    @abstractmethod
    async def is_healthy(self) -> bool:
        pass


class InMemoryMemoryAdapter(MemoryAdapter):
    """Dict-backed adapter for development and tests.

    Holds at most `max_items`; the oldest inserted item is evicted first.
    """

    def __init__(self, max_items: int = 10000) -> None:
        self._items: dict[str, MemoryItem] = {}
        self._max_items = max_items

    async def initialize(self) -> None:
        return None

    async def store(self, item: MemoryItem) -> None:
        self._items.pop(item.id, None)
        self._items[item.id] = item
        while len(self._items) > self._max_items:
            oldest = next(iter(self._items))
            del self._items[oldest]

    async def retrieve(self, item_id: str) -> MemoryItem | None:
        return self._items.get(item_id)

    async def query(self, filter: MemoryQuery) -> list[MemoryItem]:
        matches = [item for item in self._items.values() if filter.matches(item)]
        matches.sort(key=lambda item: item.timestamp, reverse=True)
        if filter.limit is not None:
            matches = matches[: filter.limit]
        return matches

    async def delete(self, item_id: str) -> bool:
        return self._items.pop(item_id, None) is not None

    async def clear(self) -> None:
        self._items.clear()

    async def count(self) -> int:
        return len(self._items)

    async def is_healthy(self) -> bool:
        return True


def create_memory_adapter(adapter_type: str, max_items: int = 10000) -> MemoryAdapter:
    """Build an adapter by type name.

    Raises:
        ValidationError: If the adapter type is not supported
    """
    if adapter_type == "memory":
        return InMemoryMemoryAdapter(max_items=max_items)
    raise ValidationError(
        f"Unsupported memory adapter type: {adapter_type}",
        context={"adapter_type": adapter_type},
    )
