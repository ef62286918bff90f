"""Configuration model exports.

    from kodus_flow.config.models import OrchestratorConfig, SessionConfig
"""

from kodus_flow.config.models.context import MemoryConfig, SessionConfig, StateConfig
from kodus_flow.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
    TracingConfig,
)
from kodus_flow.config.models.orchestrator import OrchestratorConfig, ToolEngineConfig
from kodus_flow.config.models.runtime import ExecutionRuntimeConfig, RuntimeRegistryConfig

__all__ = [
    "ExecutionRuntimeConfig",
    "LoggingConfig",
    "MemoryConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "OrchestratorConfig",
    "RuntimeRegistryConfig",
    "SessionConfig",
    "StateConfig",
    "ToolEngineConfig",
    "TracingConfig",
]
