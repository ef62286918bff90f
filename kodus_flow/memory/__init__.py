"""Long-term memory: items, adapters and the shared manager."""

from kodus_flow.memory.adapters import (
    InMemoryMemoryAdapter,
    MemoryAdapter,
    create_memory_adapter,
)
from kodus_flow.memory.manager import MemoryManager
from kodus_flow.memory.models import MemoryItem, MemoryQuery

__all__ = [
    "InMemoryMemoryAdapter",
    "MemoryAdapter",
    "MemoryItem",
    "MemoryManager",
    "MemoryQuery",
    "create_memory_adapter",
]
