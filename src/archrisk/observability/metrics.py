"""
Prometheus metrics collection for archrisk

Tracks analysis requests, fallback usage and LLM traffic.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    start_http_server,
)

from .config import TelemetryConfig

logger = logging.getLogger(__name__)


@dataclass
class MetricsCollector:
    """
    Central metrics collector for archrisk operations

    Each collector owns its registry so several instances can coexist
    (one per app in tests).
    """

    config: TelemetryConfig
    registry: CollectorRegistry = field(default_factory=CollectorRegistry)

    analysis_requests_total: Counter = field(init=False)
    analysis_duration: Histogram = field(init=False)
    analysis_rejected_total: Counter = field(init=False)
    fallback_total: Counter = field(init=False)

    llm_requests_total: Counter = field(init=False)
    llm_tokens_total: Counter = field(init=False)
    llm_errors_total: Counter = field(init=False)

    active_operations: Gauge = field(init=False)
    system_info: Info = field(init=False)

    def __post_init__(self):
        """Initialize all metrics after dataclass creation"""
        if not self.config.enabled or not self.config.metrics.enabled:
            logger.info("Metrics collection is disabled")
            return

        self._initialize_metrics()

        if self.config.should_start_metrics_server():
            self._start_metrics_server()

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""
        labels = list(self.config.metrics.default_labels.keys())
        buckets = self.config.metrics.duration_buckets

        self.analysis_requests_total = Counter(
            "archrisk_analysis_requests_total",
            "Total number of analysis requests",
            labelnames=["source", "confidence"] + labels,
            registry=self.registry,
        )

        self.analysis_duration = Histogram(
            "archrisk_analysis_duration_seconds",
            "Duration of analysis requests",
            labelnames=["source"] + labels,
            buckets=buckets,
            registry=self.registry,
        )

        self.analysis_rejected_total = Counter(
            "archrisk_analysis_rejected_total",
            "Total number of analysis requests rejected at validation",
            labelnames=labels,
            registry=self.registry,
        )

        self.fallback_total = Counter(
            "archrisk_fallback_total",
            "Total number of reports produced by the fallback generator",
            labelnames=["reason"] + labels,
            registry=self.registry,
        )

        self.llm_requests_total = Counter(
            "archrisk_llm_requests_total",
            "Total number of LLM requests",
            labelnames=["provider", "model"] + labels,
            registry=self.registry,
        )

        self.llm_tokens_total = Counter(
            "archrisk_llm_tokens_total",
            "Total number of LLM tokens used",
            labelnames=["provider", "model", "token_type"] + labels,
            registry=self.registry,
        )

        self.llm_errors_total = Counter(
            "archrisk_llm_errors_total",
            "Total number of LLM errors",
            labelnames=["provider", "model", "error_type"] + labels,
            registry=self.registry,
        )

        self.active_operations = Gauge(
            "archrisk_active_operations",
            "Number of currently active operations",
            labelnames=["operation_type"] + labels,
            registry=self.registry,
        )

        self.system_info = Info(
            "archrisk_system", "System information", registry=self.registry
        )
        self.system_info.info(
            {
                "version": self.config.tracing.service_version,
                "environment": self.config.environment,
            }
        )

        logger.info("Prometheus metrics initialized")

    def _start_metrics_server(self):
        """Start standalone HTTP server for metrics endpoint"""
        try:
            start_http_server(port=self.config.metrics.port, registry=self.registry)
            logger.info(f"Metrics server started on port {self.config.metrics.port}")
        except Exception as e:
            logger.error(f"Failed to start metrics server: {e}")

    def _get_default_labels(self) -> dict[str, str]:
        return self.config.metrics.default_labels.copy()

    @contextmanager
    def time_analysis(self, source_holder: dict[str, str]):
        """
        Time an analysis; the source label is read from source_holder
        on exit because it is only known once the analysis finishes.
        """
        start_time = time.time()
        labels = {**self._get_default_labels(), "operation_type": "analysis"}
        self.active_operations.labels(**labels).inc()
        try:
            yield
        finally:
            self.active_operations.labels(**labels).dec()
            duration = time.time() - start_time
            self.analysis_duration.labels(
                **self._get_default_labels(),
                source=source_holder.get("source", "unknown"),
            ).observe(duration)

    def record_analysis(self, source: str, confidence: str):
        """Record a completed analysis"""
        labels = {
            **self._get_default_labels(),
            "source": source,
            "confidence": confidence,
        }
        self.analysis_requests_total.labels(**labels).inc()

    def record_rejection(self):
        """Record an analysis request rejected for missing fields"""
        labels = self._get_default_labels()
        if labels:
            self.analysis_rejected_total.labels(**labels).inc()
        else:
            self.analysis_rejected_total.inc()

    def record_fallback(self, reason: str):
        """Record use of the fallback generator"""
        labels = {**self._get_default_labels(), "reason": reason}
        self.fallback_total.labels(**labels).inc()

    def record_llm_request(self, provider: str, model: str):
        """Record an LLM request"""
        labels = {**self._get_default_labels(), "provider": provider, "model": model}
        self.llm_requests_total.labels(**labels).inc()

    def record_llm_tokens(
        self,
        provider: str,
        model: str,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
    ):
        """Record LLM token usage"""
        base_labels = {
            **self._get_default_labels(),
            "provider": provider,
            "model": model,
        }

        if prompt_tokens > 0:
            labels = {**base_labels, "token_type": "prompt"}
            self.llm_tokens_total.labels(**labels).inc(prompt_tokens)

        if completion_tokens > 0:
            labels = {**base_labels, "token_type": "completion"}
            self.llm_tokens_total.labels(**labels).inc(completion_tokens)

    def record_llm_error(self, provider: str, model: str, error_type: str):
        """Record an LLM error"""
        labels = {
            **self._get_default_labels(),
            "provider": provider,
            "model": model,
            "error_type": error_type,
        }
        self.llm_errors_total.labels(**labels).inc()

    def get_metrics_text(self) -> str:
        """Get metrics in Prometheus text format"""
        return generate_latest(self.registry).decode("utf-8")


# Global metrics instance
_metrics: Optional[MetricsCollector] = None


def initialize_metrics(config: TelemetryConfig) -> None:
    """Initialize global metrics collector"""
    global _metrics
    if not config.enabled or not config.metrics.enabled:
        logger.info("Metrics collection is disabled")
        return
    _metrics = MetricsCollector(config)


def get_metrics() -> Optional[MetricsCollector]:
    """Get the global metrics collector"""
    return _metrics


def reset_metrics() -> None:
    """Drop the global metrics collector"""
    global _metrics
    _metrics = None
