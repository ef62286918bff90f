"""One-call observability bootstrap from configuration."""

from kodus_flow.config.models.observability import ObservabilityConfig
from kodus_flow.observability.logging import get_logger, setup_logging
from kodus_flow.observability.metrics import start_metrics_server
from kodus_flow.observability.tracing import setup_tracing

logger = get_logger(__name__)

_configured = False


def configure_observability(config: ObservabilityConfig) -> None:
    """Configure logging, tracing and metrics once per process."""
    global _configured
    if _configured:
        return

    setup_logging(
        level=config.logging.level,
        format=config.logging.format,
        redact_pii=config.logging.redact_pii,
    )

    if config.tracing.enabled:
        setup_tracing(
            service_name=config.tracing.service_name,
            otlp_endpoint=config.tracing.otlp_endpoint,
            console_export=config.tracing.console_export,
        )

    if config.metrics.enabled:
        start_metrics_server(config.metrics.port)

    _configured = True
    logger.info(
        "observability_configured",
        log_level=config.logging.level,
        tracing_enabled=config.tracing.enabled,
        metrics_enabled=config.metrics.enabled,
    )


def reset_observability() -> None:
    """Allow configure_observability() to run again (tests)."""
    global _configured
    _configured = False
