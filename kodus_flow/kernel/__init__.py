"""In-process event bus shared by agents and the tool engine."""

from kodus_flow.kernel.handler import EmittedEvent, EventHandler, KernelHandler

__all__ = ["EmittedEvent", "EventHandler", "KernelHandler"]
