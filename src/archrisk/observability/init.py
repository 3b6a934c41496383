"""
Observability bootstrap

initialize_observability() is called once per process by create_app(); it
configures logging first so tracing and metrics setup are logged in the
chosen format.
"""

import logging
import logging.config

from opentelemetry import trace

from .config import TelemetryConfig
from .metrics import initialize_metrics, reset_metrics
from .tracer import initialize_tracing

logger = logging.getLogger(__name__)

JSON_LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_initialized = False


def initialize_observability(config: TelemetryConfig) -> None:
    """Set up logging, tracing and metrics; later calls are ignored"""
    global _initialized

    if _initialized:
        logger.debug("Observability already initialized, skipping")
        return

    if not config.enabled:
        logger.info("Observability is disabled")
        return

    steps = [
        ("logging", config.logging.enabled, configure_logging),
        ("tracing", config.tracing.enabled, initialize_tracing),
        ("metrics", config.metrics.enabled, initialize_metrics),
    ]
    for name, enabled, setup in steps:
        if not enabled:
            continue
        try:
            setup(config)
        except Exception as e:
            logger.error(f"Failed to initialize {name}: {e}")

    _initialized = True
    logger.info(f"Observability initialized for environment: {config.environment}")


def configure_logging(config: TelemetryConfig) -> None:
    """
    Route the root logger to stdout as JSON (python-json-logger) or text.

    With tracing on, each record also carries trace_id and span_id.
    """
    correlate = config.tracing.enabled and (
        config.logging.include_trace_id or config.logging.include_span_id
    )
    json_format = JSON_LOG_FORMAT
    if correlate:
        json_format += " %(trace_id)s %(span_id)s"

    handler = {
        "class": "logging.StreamHandler",
        "level": config.logging.level,
        "formatter": config.logging.format,
        "stream": "ext://sys.stdout",
    }
    if correlate:
        handler["filters"] = ["trace_context"]

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"trace_context": {"()": TraceContextFilter}},
            "formatters": {
                "json": {
                    "class": "pythonjsonlogger.json.JsonFormatter",
                    "format": json_format,
                },
                "text": {"format": TEXT_LOG_FORMAT},
            },
            "handlers": {"console": handler},
            "root": {"level": config.logging.level, "handlers": ["console"]},
            "loggers": {"archrisk": {"level": config.logging.level}},
        }
    )


class TraceContextFilter(logging.Filter):
    """Stamp records with the ids of the current span (empty outside spans)"""

    def filter(self, record):
        span = trace.get_current_span()
        if span.is_recording():
            context = span.get_span_context()
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = ""
            record.span_id = ""
        return True


def is_observability_initialized() -> bool:
    return _initialized


def shutdown_observability() -> None:
    """Flush spans and drop the metrics collector so a new app can start clean"""
    global _initialized

    if not _initialized:
        return

    provider = trace.get_tracer_provider()
    shutdown = getattr(provider, "shutdown", None)
    if shutdown is not None:
        try:
            shutdown()
        except Exception as e:
            logger.error(f"Error shutting down tracing: {e}")

    reset_metrics()
    _initialized = False
    logger.info("Observability shutdown complete")
