"""Namespaced working memory for a single agent invocation.

The service enforces two caps: the number of namespaces, and the number of
keys per namespace. Writes are serialised with an asyncio.Lock; reads are
lock-free because they never span an await.
"""

import asyncio
import time
from typing import Any

from kodus_flow.config.models.context import StateConfig
from kodus_flow.errors import StateLimitError, ValidationError
from kodus_flow.observability.logging import get_logger

logger = get_logger(__name__)

STANDARD_NAMESPACES: frozenset[str] = frozenset({
    "agent",
    "tools",
    "execution",
    "planner",
    "user",
    "session",
    "runtime",
})


class ContextStateService:
    """Per-invocation key/value state grouped by namespace."""

    def __init__(self, owner_id: str, config: StateConfig | None = None) -> None:
        self._owner_id = owner_id
        self._config = config or StateConfig()
        self._namespaces: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self._dirty = False
        self._metrics: dict[str, int] = {
            "get_operations": 0,
            "set_operations": 0,
            "delete_operations": 0,
            "clear_operations": 0,
            "namespaces_created": 0,
            "keys_created": 0,
            "errors_encountered": 0,
            "peak_namespace_count": 0,
            "peak_namespace_size": 0,
        }

    @property
    def owner_id(self) -> str:
        return self._owner_id

    async def get(self, namespace: str, key: str, default: Any = None) -> Any:
        self._metrics["get_operations"] += 1
        return self._namespaces.get(namespace, {}).get(key, default)

    async def set(self, namespace: str, key: str, value: Any) -> None:
        """Set a value, creating the namespace if needed.

        Raises:
            ValidationError: If namespace or key is empty
            StateLimitError: If a new namespace or key would exceed the caps
        """
        if not namespace or not isinstance(namespace, str):
            self._metrics["errors_encountered"] += 1
            raise ValidationError("Namespace must be a non-empty string")
        if not key or not isinstance(key, str):
            self._metrics["errors_encountered"] += 1
            raise ValidationError("Key must be a non-empty string")

        async with self._lock:
            bucket = self._namespaces.get(namespace)
            if bucket is None:
                if len(self._namespaces) >= self._config.max_namespaces:
                    self._metrics["errors_encountered"] += 1
                    raise StateLimitError(
                        f"Maximum number of namespaces ({self._config.max_namespaces}) exceeded",
                        context={"namespace": namespace},
                    )
                if namespace not in STANDARD_NAMESPACES:
                    logger.debug("non_standard_namespace", namespace=namespace)
                bucket = {}
                self._namespaces[namespace] = bucket
                self._metrics["namespaces_created"] += 1

            if key not in bucket:
                if len(bucket) >= self._config.max_namespace_size:
                    self._metrics["errors_encountered"] += 1
                    raise StateLimitError(
                        f"Maximum namespace size ({self._config.max_namespace_size}) "
                        f"exceeded for namespace '{namespace}'",
                        context={"namespace": namespace, "key": key},
                    )
                self._metrics["keys_created"] += 1

            bucket[key] = value
            self._dirty = True
            self._metrics["set_operations"] += 1
            self._update_peaks()

    async def delete(self, namespace: str, key: str) -> bool:
        async with self._lock:
            bucket = self._namespaces.get(namespace)
            if bucket is None or key not in bucket:
                return False
            del bucket[key]
            self._dirty = True
            self._metrics["delete_operations"] += 1
            return True

    async def clear(self, namespace: str | None = None) -> None:
        """Clear one namespace's keys, or every namespace."""
        async with self._lock:
            if namespace is None:
                removed = len(self._namespaces)
                self._namespaces.clear()
            else:
                bucket = self._namespaces.get(namespace)
                if bucket is None:
                    return
                removed = len(bucket)
                bucket.clear()
            self._dirty = True
            self._metrics["clear_operations"] += 1
            logger.debug(
                "state_cleared", owner_id=self._owner_id, namespace=namespace, removed=removed
            )

    async def has(self, namespace: str, key: str) -> bool:
        return key in self._namespaces.get(namespace, {})

    async def keys(self, namespace: str) -> list[str]:
        return list(self._namespaces.get(namespace, {}))

    async def size(self, namespace: str | None = None) -> int:
        if namespace is not None:
            return len(self._namespaces.get(namespace, {}))
        return sum(len(bucket) for bucket in self._namespaces.values())

    def get_namespace(self, namespace: str) -> dict[str, Any] | None:
        """Copy of one namespace, or None if it was never created."""
        bucket = self._namespaces.get(namespace)
        return dict(bucket) if bucket is not None else None

    def get_all_namespaces(self) -> dict[str, dict[str, Any]]:
        return {name: dict(bucket) for name, bucket in self._namespaces.items()}

    def has_unsaved_changes(self) -> bool:
        return self._dirty

    def mark_saved(self) -> None:
        self._dirty = False

    def get_metrics(self) -> dict[str, Any]:
        total_keys = sum(len(bucket) for bucket in self._namespaces.values())
        return {
            **self._metrics,
            "namespace_count": len(self._namespaces),
            "total_keys": total_keys,
            "collected_at": time.time(),
        }

    def _update_peaks(self) -> None:
        self._metrics["peak_namespace_count"] = max(
            self._metrics["peak_namespace_count"], len(self._namespaces)
        )
        largest = max((len(bucket) for bucket in self._namespaces.values()), default=0)
        self._metrics["peak_namespace_size"] = max(self._metrics["peak_namespace_size"], largest)
