"""Agent contexts and the session/state services they are built from."""

from kodus_flow.context.accessors import ConversationAccess, MemoryAccess, WorkingState
from kodus_flow.context.builder import ContextBuilder
from kodus_flow.context.models import AgentContext, SystemContext, Thread, UserContext
from kodus_flow.context.session import (
    ConversationEntry,
    Session,
    SessionContext,
    SessionService,
    SessionStatus,
)
from kodus_flow.context.state import STANDARD_NAMESPACES, ContextStateService

__all__ = [
    "AgentContext",
    "ContextBuilder",
    "ContextStateService",
    "ConversationAccess",
    "ConversationEntry",
    "MemoryAccess",
    "STANDARD_NAMESPACES",
    "Session",
    "SessionContext",
    "SessionService",
    "SessionStatus",
    "SystemContext",
    "Thread",
    "UserContext",
    "WorkingState",
]
