# Shared utilities and helpers

from .errors import (
    CollectorRejectedError,
    CollectorUnreachableError,
    EventEncodingError,
    IntrospectionServerError,
    RecoveryAction,
    RelayError,
    SimulationReadError,
    SimulationTimeoutError,
    UnknownEventTypeError,
)
from .telemetry import (
    PerformanceTimer,
    get_logger,
    redact_pii,
    setup_logging,
    setup_tracing,
)

__all__ = [
    "CollectorRejectedError",
    "CollectorUnreachableError",
    "EventEncodingError",
    "IntrospectionServerError",
    "PerformanceTimer",
    "RecoveryAction",
    "RelayError",
    "SimulationReadError",
    "SimulationTimeoutError",
    "UnknownEventTypeError",
    "get_logger",
    "redact_pii",
    "setup_logging",
    "setup_tracing",
]
