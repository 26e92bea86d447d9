"""Unit tests for the relay error taxonomy."""

from simrelay.utils.errors import (
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


class TestRelayError:
    """Test base RelayError class."""

    def test_initialization(self) -> None:
        """Test error initialization with message and recovery action."""
        error = RelayError("Test error", RecoveryAction.DROP)
        assert str(error) == "Test error"
        assert error.recovery_action == RecoveryAction.DROP

    def test_default_recovery_action(self) -> None:
        """Test default recovery action is REPORT."""
        error = RelayError("Test error")
        assert error.recovery_action == RecoveryAction.REPORT


class TestCollectorErrors:
    """Test collector delivery errors."""

    def test_unreachable(self) -> None:
        """Test unreachable collector triggers probing."""
        error = CollectorUnreachableError("http://localhost:1664/webhook", "refused")

        assert error.url == "http://localhost:1664/webhook"
        assert error.reason == "refused"
        assert error.recovery_action == RecoveryAction.PROBE
        assert isinstance(error, RelayError)

    def test_rejected(self) -> None:
        """Test rejected delivery carries the status code and is dropped."""
        error = CollectorRejectedError("http://c/webhook", 503, "STAT_CHANGED")

        assert error.status_code == 503
        assert error.event_type == "STAT_CHANGED"
        assert error.recovery_action == RecoveryAction.DROP
        assert "503" in str(error)

    def test_encoding(self) -> None:
        """Test unencodable events are dropped."""
        error = EventEncodingError("CHAT_MESSAGE", "float NaN is not JSON compliant")

        assert error.event_type == "CHAT_MESSAGE"
        assert error.recovery_action == RecoveryAction.DROP
        assert str(error).startswith("Cannot encode CHAT_MESSAGE event")


class TestSimulationErrors:
    """Test cross-context read errors."""

    def test_timeout_message_format(self) -> None:
        """Test timeout error message format."""
        error = SimulationTimeoutError("capture_all", 5000.0)

        assert error.operation == "capture_all"
        assert error.timeout_ms == 5000.0
        assert str(error) == "Simulation thread did not complete capture_all within 5000.0ms"
        assert error.recovery_action == RecoveryAction.REPORT

    def test_read_error_keeps_cause(self) -> None:
        """Test read error wraps the original exception."""
        cause = KeyError("tile")
        error = SimulationReadError("capture_snapshot", cause)

        assert error.cause is cause
        assert "KeyError" in str(error)


class TestSurfaceErrors:
    """Test errors of the introspection surface."""

    def test_unknown_event_type(self) -> None:
        """Test unknown event types are rejected."""
        error = UnknownEventTypeError("FOO")

        assert error.event_type == "FOO"
        assert error.recovery_action == RecoveryAction.REJECT

    def test_introspection_server_error(self) -> None:
        """Test server startup failure degrades the relay."""
        error = IntrospectionServerError("127.0.0.1", 1464, "Address already in use")

        assert error.host == "127.0.0.1"
        assert error.port == 1464
        assert error.recovery_action == RecoveryAction.DEGRADE
        assert "1464" in str(error)
