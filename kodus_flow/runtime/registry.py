"""RuntimeRegistry: one ExecutionRuntime per thread, with idle eviction."""

import asyncio
import time
from collections.abc import Callable

from kodus_flow.config.models.runtime import ExecutionRuntimeConfig, RuntimeRegistryConfig
from kodus_flow.context.session import SessionService
from kodus_flow.memory.manager import MemoryManager
from kodus_flow.observability.logging import get_logger
from kodus_flow.observability.metrics import ACTIVE_RUNTIMES
from kodus_flow.runtime.execution import ExecutionRuntime
from kodus_flow.utils.ids import validate_thread_id

logger = get_logger(__name__)


class RuntimeRegistry:
    """Maps thread ids to long-lived ExecutionRuntime instances.

    Get-or-create is atomic under an asyncio.Lock. While any thread is
    registered a background task sweeps runtimes idle for longer than the
    configured timeout.
    """

    def __init__(
        self,
        memory_manager: MemoryManager,
        config: RuntimeRegistryConfig | None = None,
        runtime_config: ExecutionRuntimeConfig | None = None,
        session_service: SessionService | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._memory = memory_manager
        self._config = config or RuntimeRegistryConfig()
        self._runtime_config = runtime_config or ExecutionRuntimeConfig()
        self._sessions = session_service
        self._clock = clock

        self._runtimes: dict[str, ExecutionRuntime] = {}
        self._last_access: dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: asyncio.Task | None = None

    @property
    def thread_count(self) -> int:
        return len(self._runtimes)

    async def get_by_thread(self, thread_id: str) -> ExecutionRuntime:
        """Get the thread's runtime, creating it on first access.

        Raises:
            InvalidThreadIdError: If the thread id fails validation
        """
        validate_thread_id(thread_id)

        async with self._lock:
            runtime = self._runtimes.get(thread_id)
            if runtime is None:
                runtime = ExecutionRuntime(
                    self._memory,
                    config=self._runtime_config,
                    session_service=self._sessions,
                )
                self._runtimes[thread_id] = runtime
                ACTIVE_RUNTIMES.set(len(self._runtimes))
                logger.info(
                    "thread_runtime_created",
                    thread_id=thread_id,
                    total_threads=len(self._runtimes),
                )
                self._start_cleanup()
            self._last_access[thread_id] = self._clock()
            return runtime

    def has_thread(self, thread_id: str) -> bool:
        return thread_id in self._runtimes

    def remove_thread(self, thread_id: str) -> bool:
        if thread_id not in self._runtimes:
            return False
        del self._runtimes[thread_id]
        self._last_access.pop(thread_id, None)
        ACTIVE_RUNTIMES.set(len(self._runtimes))
        logger.info("thread_runtime_removed", thread_id=thread_id)
        return True

    async def cleanup(self, force: bool = False) -> int:
        """Evict idle runtimes, or all of them when forced.

        Returns:
            Number of runtimes evicted
        """
        now = self._clock()
        timeout = self._config.thread_timeout_seconds
        async with self._lock:
            stale = [
                thread_id
                for thread_id, last_access in self._last_access.items()
                if force or now - last_access > timeout
            ]
            for thread_id in stale:
                runtime = self._runtimes.pop(thread_id, None)
                self._last_access.pop(thread_id, None)
                if runtime is not None:
                    await runtime.cleanup()
            ACTIVE_RUNTIMES.set(len(self._runtimes))

        if stale:
            logger.info(
                "thread_runtimes_evicted",
                evicted=len(stale),
                remaining=len(self._runtimes),
                forced=force,
            )
        return len(stale)

    async def stop_cleanup(self) -> None:
        """Stop the background sweep if it is running."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("registry_cleanup_stopped")

    async def clear(self) -> None:
        """Stop the sweep and drop every runtime."""
        await self.stop_cleanup()
        async with self._lock:
            self._runtimes.clear()
            self._last_access.clear()
        ACTIVE_RUNTIMES.set(0)
        logger.info("registry_cleared")

    def get_stats(self) -> dict[str, object]:
        now = self._clock()
        return {
            "thread_count": len(self._runtimes),
            "threads": sorted(self._runtimes),
            "oldest_idle_seconds": max((now - t for t in self._last_access.values()), default=0.0),
            "cleanup_running": self._cleanup_task is not None and not self._cleanup_task.done(),
        }

    def _start_cleanup(self) -> None:
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.debug(
            "registry_cleanup_started",
            interval_seconds=self._config.cleanup_interval_seconds,
        )

    async def _cleanup_loop(self) -> None:
        while self._runtimes:
            await asyncio.sleep(self._config.cleanup_interval_seconds)
            try:
                await self.cleanup()
            except Exception as e:
                logger.error("registry_cleanup_error", error=str(e))
        self._cleanup_task = None
        logger.debug("registry_cleanup_idle")
