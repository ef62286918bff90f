"""KernelHandler: a small async event bus.

emit() is fire-and-forget: handler failures are logged, never raised to the
emitter. request() awaits the first registered handler and returns its value.
"""

from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from kodus_flow.errors import EngineError
from kodus_flow.observability.logging import get_logger
from kodus_flow.runtime.models import utcnow

logger = get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[Any]]

MAX_EMITTED_EVENTS = 1000


class EmittedEvent(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


class KernelHandler:
    """Routes events to async handlers registered per event type."""

    def __init__(self, max_events: int = MAX_EMITTED_EVENTS) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._events: deque[EmittedEvent] = deque(maxlen=max_events)

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("kernel_handler_registered", event_type=event_type)

    def has_handler(self, event_type: str) -> bool:
        return bool(self._handlers.get(event_type))

    async def emit(self, event_type: str, data: dict[str, Any] | None = None) -> None:
        event = EmittedEvent(type=event_type, data=data or {})
        self._events.append(event)
        for handler in list(self._handlers.get(event_type, [])):
            try:
                await handler(event.data)
            except Exception as e:
                logger.warning("kernel_handler_failed", event_type=event_type, error=str(e))

    async def request(self, event_type: str, data: dict[str, Any] | None = None) -> Any:
        """Send an event to the first handler and return its result.

        Raises:
            EngineError: If no handler is registered for the event type
        """
        handlers = self._handlers.get(event_type)
        if not handlers:
            raise EngineError(
                f"No handler registered for '{event_type}'",
                context={"event_type": event_type},
            )
        event = EmittedEvent(type=event_type, data=data or {})
        self._events.append(event)
        return await handlers[0](event.data)

    def get_emitted_events(self) -> list[EmittedEvent]:
        return list(self._events)

    def clear(self) -> None:
        self._handlers.clear()
        self._events.clear()
