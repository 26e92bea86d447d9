"""Telemetry utilities for logging, metrics, and tracing.

This module provides the relay's own observability infrastructure:
- Structured logging with PII redaction
- Prometheus metrics for ingestion, delivery, connection state and snapshots
- OpenTelemetry tracing setup
- Performance measurement around cross-context reads
"""

import asyncio
import logging
import re
import time
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from prometheus_client import Counter, Gauge, Histogram
from structlog.processors import JSONRenderer

# Prometheus metrics
EVENTS_EMITTED = Counter(
    "simrelay_events_emitted_total",
    "Total number of events accepted into the event cache",
    ["event_type"],
)

EVENTS_DROPPED = Counter(
    "simrelay_events_dropped_total",
    "Total number of events dropped before reaching the cache",
    ["reason"],
)

DELIVERY_OUTCOMES = Counter(
    "simrelay_deliveries_total",
    "Delivery attempts by mode and outcome",
    ["mode", "outcome"],
)

DELIVERY_LATENCY = Histogram(
    "simrelay_delivery_duration_seconds",
    "Collector round-trip latency in seconds",
    ["mode"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

CONNECTION_STATE_CHANGES = Counter(
    "simrelay_connection_state_changes_total",
    "Connection state transitions",
    ["from_state", "to_state"],
)

EVENT_CACHE_SIZE = Gauge(
    "simrelay_event_cache_size",
    "Number of events currently held in the event cache",
)

FLUSH_SIZE = Histogram(
    "simrelay_flush_events",
    "Number of events redelivered per flush",
    buckets=[0, 1, 5, 10, 25, 50, 100, 250, 500, 1000, 5000],
)

OPERATION_COUNTER = Counter(
    "simrelay_operations_total",
    "Total number of timed operations",
    ["operation", "status"],
)

OPERATION_LATENCY = Histogram(
    "simrelay_operation_duration_seconds",
    "Timed operation latency in seconds",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0, 5.0],
)

# PII patterns for redaction
PII_PATTERNS = {
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b"),
    "phone": re.compile(
        r"\b(?:\+?1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}\b|\b[0-9]{3}-[0-9]{4}\b"
    ),
    "token": re.compile(r"\b[A-Za-z0-9]{20,}\b"),
    "credit_card": re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
}


def redact_pii(text: Any) -> Any:
    """Redact personally identifiable information from text.

    Args:
        text: Input text that may contain PII

    Returns:
        Text with PII patterns replaced with [REDACTED_<type>], or original input if not a string

    Example:
        >>> redact_pii("Contact john@example.com")
        'Contact [REDACTED_EMAIL]'
    """
    if not isinstance(text, str):
        return text

    result = text
    for pii_type, pattern in PII_PATTERNS.items():
        result = pattern.sub(f"[REDACTED_{pii_type.upper()}]", result)
    return result


def pii_redaction_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor to redact PII from log events.

    Chat messages relayed from the simulation carry free text typed by
    players, so every string value in the event dict is scrubbed.
    """

    def redact_value(value: Any) -> Any:
        if isinstance(value, str):
            return redact_pii(value)
        elif isinstance(value, dict):
            return {k: redact_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [redact_value(item) for item in value]
        return value

    return {key: redact_value(value) for key, value in event_dict.items()}


def setup_logging(
    log_level: str = "INFO", enable_pii_redaction: bool = True, fmt: str = "json"
) -> None:
    """Initialize structured logging with PII redaction.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_pii_redaction: Whether to enable PII redaction processor
        fmt: Output format, ``json`` or ``text``
    """
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger().setLevel(log_level.upper())

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if enable_pii_redaction:
        processors.append(pii_redaction_processor)

    if fmt == "text":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_tracing(service_name: str = "simrelay", otlp_endpoint: str | None = None) -> None:
    """Initialize OpenTelemetry tracing.

    Args:
        service_name: Name of the service for tracing
        otlp_endpoint: OTLP endpoint URL (if None, uses console exporter)
    """
    from simrelay import __version__

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
        }
    )

    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)

    exporter: OTLPSpanExporter | ConsoleSpanExporter
    if otlp_endpoint:
        exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
    else:
        exporter = ConsoleSpanExporter()

    tracer_provider.add_span_processor(BatchSpanProcessor(exporter))


def get_tracer(name: str) -> trace.Tracer:
    """Get OpenTelemetry tracer for a component."""
    return trace.get_tracer(name)


def get_logger(name: str, **context: Any) -> Any:
    """Get a structured logger with optional context.

    Args:
        name: Logger name
        **context: Additional context to bind to logger

    Returns:
        Bound logger with context
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger


def log_operation(
    logger: Any,
    operation: str,
    status: str = "success",
    latency_ms: float | None = None,
    **extra_context: Any,
) -> None:
    """Log an operation with standardized fields for observability.

    Args:
        logger: Structured logger instance
        operation: Operation name
        status: Operation status (success, error, warning)
        latency_ms: Operation latency in milliseconds
        **extra_context: Additional context fields
    """
    log_data = {
        "operation": operation,
        "status": status,
        **extra_context,
    }

    if latency_ms is not None:
        log_data["latency_ms"] = latency_ms

    log_data.update(get_timing_context())

    if status == "error":
        logger.error("Operation completed", **log_data)
    elif status == "warning":
        logger.warning("Operation completed", **log_data)
    else:
        logger.debug("Operation completed", **log_data)


class PerformanceTimer:
    """Context manager for measuring operation performance.

    Records metrics, logs timing information, and creates a tracing span.
    """

    def __init__(
        self,
        operation: str,
        logger: structlog.BoundLogger | None = None,
        record_metrics: bool = True,
        create_span: bool = True,
        tracer_name: str = "simrelay.performance",
        **attributes: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger("simrelay.performance")
        self.record_metrics = record_metrics
        self.create_span = create_span
        self.attributes = attributes
        self.tracer = get_tracer(tracer_name) if create_span else None
        self.span: trace.Span | None = None
        self.start_time: float | None = None
        self.end_time: float | None = None

    def __enter__(self) -> "PerformanceTimer":
        self.start_time = time.perf_counter()

        if self.create_span and self.tracer:
            self.span = self.tracer.start_span(self.operation)
            for key, value in self.attributes.items():
                self.span.set_attribute(key, value)

        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.perf_counter()
        duration = self.end_time - (self.start_time or 0)

        status = "error" if exc_type else "success"

        if self.record_metrics:
            OPERATION_COUNTER.labels(operation=self.operation, status=status).inc()
            OPERATION_LATENCY.labels(operation=self.operation).observe(duration)

        if self.span:
            self.span.set_attribute("duration_seconds", duration)
            self.span.set_attribute("status", status)

            if exc_type:
                self.span.set_status(trace.Status(trace.StatusCode.ERROR, str(exc_val)))
                self.span.record_exception(exc_val)
            else:
                self.span.set_status(trace.Status(trace.StatusCode.OK))

            self.span.end()

        extra: dict[str, Any] = dict(self.attributes)
        if exc_type:
            extra["error"] = str(exc_val)
            extra["error_type"] = exc_type.__name__

        log_operation(
            self.logger,
            self.operation,
            status=status,
            latency_ms=duration * 1000,
            **extra,
        )

    @property
    def duration(self) -> float | None:
        """Get operation duration in seconds."""
        if self.start_time is not None and self.end_time is not None:
            return self.end_time - self.start_time
        return None


def record_event_emitted(event_type: str, cache_size: int) -> None:
    """Record an event accepted into the cache.

    Args:
        event_type: Event type name
        cache_size: Cache size after the append
    """
    EVENTS_EMITTED.labels(event_type=event_type).inc()
    EVENT_CACHE_SIZE.set(cache_size)


def record_event_dropped(reason: str) -> None:
    """Record an event dropped before reaching the cache.

    Args:
        reason: Why it was dropped (disabled, stopped, unknown_type)
    """
    EVENTS_DROPPED.labels(reason=reason).inc()


def record_delivery(mode: str, outcome: str, latency_seconds: float | None = None) -> None:
    """Record the outcome of one delivery attempt.

    Args:
        mode: Delivery mode (async, sync)
        outcome: Delivery outcome (delivered, rejected, unreachable, skipped)
        latency_seconds: Collector round-trip time, when a request was made
    """
    DELIVERY_OUTCOMES.labels(mode=mode, outcome=outcome).inc()
    if latency_seconds is not None:
        DELIVERY_LATENCY.labels(mode=mode).observe(latency_seconds)


def record_connection_state_change(from_state: str, to_state: str) -> None:
    """Record a connection state transition.

    Args:
        from_state: Previous state (CONNECTED, PROBING, DISABLED)
        to_state: New state (CONNECTED, PROBING, DISABLED)
    """
    CONNECTION_STATE_CHANGES.labels(from_state=from_state, to_state=to_state).inc()


def record_flush(event_count: int, cache_size: int) -> None:
    """Record a cache flush.

    Args:
        event_count: Number of events captured for redelivery
        cache_size: Cache size after the capture
    """
    FLUSH_SIZE.observe(event_count)
    EVENT_CACHE_SIZE.set(cache_size)


def update_cache_size(size: int) -> None:
    """Update the event cache size gauge."""
    EVENT_CACHE_SIZE.set(size)


class MonotonicClock:
    """Monotonic clock for internal timing measurements."""

    @staticmethod
    def now() -> float:
        """Get current monotonic time in seconds.

        Returns:
            Current time from the running event loop, or time.monotonic()
            when called off-loop
        """
        try:
            loop = asyncio.get_running_loop()
            return loop.time()
        except RuntimeError:
            return time.monotonic()

    @staticmethod
    def wall_time() -> float:
        """Get current wall clock time for display purposes."""
        return time.time()


def get_timing_context() -> dict[str, float]:
    """Get current timing context for logging."""
    return {
        "monotonic_time": MonotonicClock.now(),
        "wall_time": MonotonicClock.wall_time(),
    }
