"""Structured error types for the telemetry relay.

Every failure the relay can meet is mapped to one of these exceptions, each
carrying the recovery action the surrounding component applies. None of them
is allowed to escape into the host simulation.
"""

from enum import Enum


class RecoveryAction(Enum):
    """Recovery actions for error handling."""

    PROBE = "probe"
    DROP = "drop"
    REPORT = "report"
    REJECT = "reject"
    DEGRADE = "degrade"


class RelayError(Exception):
    """Base exception for relay errors."""

    def __init__(self, message: str, recovery_action: RecoveryAction = RecoveryAction.REPORT):
        """Initialize relay error.

        Args:
            message: Error message
            recovery_action: Suggested recovery action
        """
        super().__init__(message)
        self.recovery_action = recovery_action


class CollectorUnreachableError(RelayError):
    """Error raised when the collector cannot be reached at all.

    Covers connection refusals, DNS failures and transport timeouts. While
    connected this moves the session into probing.
    """

    def __init__(self, url: str, reason: str):
        """Initialize collector unreachable error.

        Args:
            url: Collector URL that was contacted
            reason: Underlying transport failure
        """
        self.url = url
        self.reason = reason

        super().__init__(f"Collector {url} unreachable: {reason}", RecoveryAction.PROBE)


class CollectorRejectedError(RelayError):
    """Error raised when the collector answers with a non-success status.

    The event is treated as a delivery miss; the connection state is left
    untouched.
    """

    def __init__(self, url: str, status_code: int, event_type: str | None = None):
        """Initialize collector rejected error.

        Args:
            url: Collector URL that answered
            status_code: HTTP status code returned
            event_type: Type of the rejected event (optional)
        """
        self.url = url
        self.status_code = status_code
        self.event_type = event_type

        if event_type:
            message = f"Collector {url} rejected {event_type} with status {status_code}"
        else:
            message = f"Collector {url} answered with status {status_code}"

        super().__init__(message, RecoveryAction.DROP)


class EventEncodingError(RelayError):
    """Error raised when an event cannot be encoded as a JSON request body."""

    def __init__(self, event_type: str, reason: str):
        """Initialize event encoding error.

        Args:
            event_type: Type of the event that failed to encode
            reason: Encoder failure message
        """
        self.event_type = event_type
        self.reason = reason

        super().__init__(f"Cannot encode {event_type} event: {reason}", RecoveryAction.DROP)


class SimulationTimeoutError(RelayError):
    """Error raised when the simulation thread does not run a read in time."""

    def __init__(self, operation: str, timeout_ms: float):
        """Initialize simulation timeout error.

        Args:
            operation: Operation that was handed to the simulation thread
            timeout_ms: Bounded wait in milliseconds
        """
        self.operation = operation
        self.timeout_ms = timeout_ms

        message = (
            f"Simulation thread did not complete {operation} "
            f"within {timeout_ms:.1f}ms"
        )

        super().__init__(message, RecoveryAction.REPORT)


class SimulationReadError(RelayError):
    """Error raised when a read fails while running on the simulation thread."""

    def __init__(self, operation: str, cause: Exception):
        """Initialize simulation read error.

        Args:
            operation: Operation that failed
            cause: Exception raised by the read
        """
        self.operation = operation
        self.cause = cause

        super().__init__(
            f"Simulation read {operation} failed: {type(cause).__name__}: {cause}",
            RecoveryAction.REPORT,
        )


class UnknownEventTypeError(RelayError):
    """Error raised for an event type that has no registered schema."""

    def __init__(self, event_type: str):
        self.event_type = event_type

        super().__init__(
            f"Schema not found for event type: {event_type}", RecoveryAction.REJECT
        )


class IntrospectionServerError(RelayError):
    """Error raised when the local introspection server cannot start.

    Delivery keeps working; only the HTTP surface is unavailable.
    """

    def __init__(self, host: str, port: int, reason: str):
        """Initialize introspection server error.

        Args:
            host: Interface the server tried to bind
            port: Port the server tried to bind
            reason: Underlying failure
        """
        self.host = host
        self.port = port
        self.reason = reason

        super().__init__(
            f"Introspection server could not start on {host}:{port}: {reason}",
            RecoveryAction.DEGRADE,
        )
