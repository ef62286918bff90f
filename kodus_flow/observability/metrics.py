"""Prometheus metrics for kodus_flow.

Covers agent dispatch, tool execution, context versioning and the
runtime/session population.
"""

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# Agent dispatch
AGENT_CALLS = Counter(
    "kodus_flow_agent_calls_total",
    "Total number of agent calls dispatched by the orchestrator",
    labelnames=["agent_name", "execution_mode", "status"],
)

AGENT_CALL_LATENCY = Histogram(
    "kodus_flow_agent_call_latency_seconds",
    "Agent call latency in seconds",
    labelnames=["agent_name", "execution_mode"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

AGENT_ITERATIONS = Histogram(
    "kodus_flow_agent_iterations",
    "Think/act/observe iterations per agent execution",
    labelnames=["agent_name"],
    buckets=(1, 2, 3, 5, 8, 10, 15, 20),
)

# Tool execution
TOOL_CALLS = Counter(
    "kodus_flow_tool_calls_total",
    "Total number of tool executions",
    labelnames=["tool_name", "status"],
)

TOOL_CALL_LATENCY = Histogram(
    "kodus_flow_tool_call_latency_seconds",
    "Tool execution latency in seconds",
    labelnames=["tool_name"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Context versioning
CONTEXT_VERSIONS_APPENDED = Counter(
    "kodus_flow_context_versions_appended_total",
    "Context versions appended to execution runtimes",
    labelnames=["source"],
)

# Population
ACTIVE_RUNTIMES = Gauge(
    "kodus_flow_active_runtimes",
    "Execution runtimes held by the runtime registry",
)

ACTIVE_SESSIONS = Gauge(
    "kodus_flow_active_sessions",
    "Number of active sessions",
    labelnames=["tenant_id"],
)

# Errors
ERRORS = Counter(
    "kodus_flow_errors_total",
    "Total number of errors",
    labelnames=["component", "error_code"],
)


def start_metrics_server(port: int = 9090) -> None:
    """Expose the default registry over HTTP for Prometheus scraping."""
    start_http_server(port)
