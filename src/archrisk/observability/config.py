"""
Telemetry settings

Nested under ArchriskConfig.telemetry, so every field can be set from
archrisk.yml or ARCHRISK_TELEMETRY__* environment variables.
"""

from typing import Optional

from pydantic import BaseModel, Field


class TracingConfig(BaseModel):
    """OpenTelemetry span settings"""

    enabled: bool = True
    service_name: str = "archrisk"
    service_version: str = "0.1.0"

    # Spans are only exported when an OTLP endpoint is set
    otlp_endpoint: Optional[str] = None
    otlp_headers: dict[str, str] = Field(default_factory=dict)
    otlp_insecure: bool = True

    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    resource_attributes: dict[str, str] = Field(default_factory=dict)


class MetricsConfig(BaseModel):
    """Prometheus collector settings"""

    enabled: bool = True
    # The API serves /metrics itself; a port starts an extra standalone exporter
    port: Optional[int] = Field(default=None, ge=1024, le=65535)
    default_labels: dict[str, str] = Field(default_factory=dict)

    # Analyses are dominated by one LLM round trip, fallbacks take milliseconds
    duration_buckets: list[float] = Field(
        default_factory=lambda: [0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
    )


class LoggingConfig(BaseModel):
    enabled: bool = True
    level: str = "INFO"
    format: str = Field(default="json", description="json | text")
    include_trace_id: bool = True
    include_span_id: bool = True


class TelemetryConfig(BaseModel):
    """Tracing, metrics and logging together; `enabled` switches all three off"""

    enabled: bool = True
    environment: str = "development"

    tracing: TracingConfig = Field(default_factory=TracingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def get_resource_attributes(self) -> dict[str, str]:
        attributes = {
            "service.name": self.tracing.service_name,
            "service.version": self.tracing.service_version,
            "deployment.environment": self.environment,
        }
        attributes.update(self.tracing.resource_attributes)
        return attributes

    def should_export_traces(self) -> bool:
        return (
            self.enabled
            and self.tracing.enabled
            and self.tracing.otlp_endpoint is not None
        )

    def should_start_metrics_server(self) -> bool:
        return self.enabled and self.metrics.enabled and self.metrics.port is not None
