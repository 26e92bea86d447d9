"""Session state shared, by handle, between the relay components."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from simrelay.core.event_cache import EventCache


class ConnectionState(str, Enum):
    """Reachability of the collector as seen by the health monitor."""

    CONNECTED = "CONNECTED"
    PROBING = "PROBING"
    DISABLED = "DISABLED"


@dataclass(slots=True)
class SessionState:
    """Single owned instance of the relay's mutable session state.

    ``connection`` is written only by ``ConnectionHealthMonitor``; every other
    component reads it. The cache is written by the relay and read by the
    introspection server.
    """

    cache: EventCache = field(default_factory=EventCache)
    connection: ConnectionState = ConnectionState.CONNECTED
    started_at: datetime | None = None
    accepting: bool = False
    disabled_notified: bool = False

    @property
    def is_connected(self) -> bool:
        return self.connection is ConnectionState.CONNECTED

    @property
    def is_disabled(self) -> bool:
        return self.connection is ConnectionState.DISABLED

    def mark_started(self) -> None:
        self.started_at = datetime.now(UTC)
        self.accepting = True

    def status(self) -> dict[str, object]:
        """Read-only view for the introspection surface."""
        return {
            "connectionState": self.connection.value,
            "cacheSize": len(self.cache),
            "accepting": self.accepting,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
        }
