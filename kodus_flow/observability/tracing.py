"""OpenTelemetry tracing for agent execution.

Agents wrap each think/act/observe phase in a span; the orchestrator wraps
each dispatched call. Spans are exported via OTLP when an endpoint is
configured, otherwise tracing is a no-op.
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer

_tracer: Tracer | None = None


def setup_tracing(
    service_name: str = "kodus-flow",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> Tracer:
    """Initialize OpenTelemetry tracing.

    Args:
        service_name: Name identifying this service in traces
        otlp_endpoint: OTLP gRPC endpoint, falls back to OTEL_EXPORTER_OTLP_ENDPOINT
        console_export: Also print spans to stdout

    Returns:
        Configured Tracer instance
    """
    global _tracer

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))

    endpoint = otlp_endpoint or os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )

    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(service_name)
    return _tracer


def get_tracer() -> Tracer:
    """Get the configured tracer, or the global (possibly no-op) one."""
    if _tracer is None:
        return trace.get_tracer("kodus-flow")
    return _tracer


def get_current_trace_id() -> str | None:
    """Current trace ID as hex, or None outside a span."""
    span = trace.get_current_span()
    if span and span.get_span_context().is_valid:
        return format(span.get_span_context().trace_id, "032x")
    return None


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Create a span as the current span for the enclosed block."""
    clean = {k: v for k, v in (attributes or {}).items() if v is not None}
    with get_tracer().start_as_current_span(name, kind=kind, attributes=clean) as span:
        yield span


def record_exception(span: Span, exception: BaseException, escaped: bool = True) -> None:
    """Record an exception on a span and mark it as failed."""
    span.record_exception(exception, escaped=escaped)
    span.set_status(Status(StatusCode.ERROR, str(exception)))


def mark_span_ok(span: Span) -> None:
    span.set_status(Status(StatusCode.OK))


def set_span_attributes(span: Span, **attributes: Any) -> None:
    """Set multiple attributes on a span, skipping None values."""
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)


@contextmanager
def agent_phase_span(
    phase: str,
    agent_name: str,
    correlation_id: str | None,
    iteration: int,
    **attributes: Any,
) -> Generator[Span, None, None]:
    """Span for one think/act/observe phase of an agent iteration.

    Exceptions are recorded on the span and re-raised.
    """
    with create_span(
        f"kodus_flow.agent.{phase}",
        attributes={
            "kodus_flow.agent_name": agent_name,
            "kodus_flow.correlation_id": correlation_id,
            "kodus_flow.iteration": iteration,
            **attributes,
        },
    ) as span:
        try:
            yield span
        except Exception as exc:
            record_exception(span, exc)
            raise
        else:
            mark_span_ok(span)
