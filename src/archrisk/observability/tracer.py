"""
OpenTelemetry tracing for analysis requests and LLM calls

Until initialize_tracing() runs, every helper here works against a no-op
tracer, so library code can be traced unconditionally.
"""

import functools
import logging
import time
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Optional, ParamSpec, TypeVar

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Status, StatusCode

from .config import TelemetryConfig

logger = logging.getLogger(__name__)

_tracer: Optional[trace.Tracer] = None

P = ParamSpec("P")
T = TypeVar("T")


def initialize_tracing(config: TelemetryConfig) -> None:
    """Install a TracerProvider, exporting over OTLP gRPC when an endpoint is set"""
    global _tracer

    if not config.enabled or not config.tracing.enabled:
        logger.info("Tracing is disabled")
        return

    provider = TracerProvider(
        resource=Resource.create(config.get_resource_attributes()),
        sampler=TraceIdRatioBased(config.tracing.sample_rate),
    )

    if config.should_export_traces():
        endpoint = config.tracing.otlp_endpoint
        try:
            exporter = OTLPSpanExporter(
                endpoint=endpoint,
                headers=config.tracing.otlp_headers,
                insecure=config.tracing.otlp_insecure,
            )
            provider.add_span_processor(BatchSpanProcessor(exporter))
            logger.info(f"Exporting traces to {endpoint}")
        except Exception as e:
            logger.error(f"Failed to configure OTLP exporter for {endpoint}: {e}")

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer("archrisk", config.tracing.service_version)

    logger.info(f"Tracing initialized (sample_rate={config.tracing.sample_rate})")


def get_tracer() -> trace.Tracer:
    if _tracer is None:
        return trace.NoOpTracer()
    return _tracer


@contextmanager
def trace_operation(operation_name: str, attributes: Optional[dict[str, Any]] = None):
    """
    Run the enclosed block in a span named operation_name.

    Exceptions are recorded on the span and re-raised.
    """
    with get_tracer().start_as_current_span(operation_name) as span:
        for key, value in (attributes or {}).items():
            span.set_attribute(key, value)

        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def trace_async(
    operation_name: Optional[str] = None,
    attributes: Optional[dict[str, Any]] = None,
    record_args: bool = False,
):
    """
    Decorator wrapping a coroutine function in trace_operation.

    Args:
        operation_name: Span name, defaults to the function's qualified name
        attributes: Static span attributes
        record_args: Also record str/int/float/bool arguments as attributes
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        name = operation_name or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            span_attributes = dict(attributes or {})
            if record_args:
                simple = (str, int, float, bool)
                span_attributes.update(
                    {f"arg.{i}": a for i, a in enumerate(args) if isinstance(a, simple)}
                )
                span_attributes.update(
                    {f"kwarg.{k}": v for k, v in kwargs.items() if isinstance(v, simple)}
                )

            with trace_operation(name, span_attributes) as span:
                start_time = time.time()
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    span.set_attribute("error.type", type(e).__name__)
                    raise
                finally:
                    span.set_attribute(
                        "operation.duration_ms", (time.time() - start_time) * 1000
                    )

        return wrapper

    return decorator


def add_event(name: str, attributes: Optional[dict[str, Any]] = None) -> None:
    """Add an event to the current span, if one is recording"""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes or {})


def set_attribute(key: str, value: Any) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(key, value)
