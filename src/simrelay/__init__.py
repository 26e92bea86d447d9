"""simrelay - In-process telemetry relay for real-time simulations.

simrelay captures simulation events, forwards them to an external HTTP
collector with connection-loss tolerance, and exposes a local read-only
introspection server with on-demand world snapshots.
"""

__version__ = "0.1.0"

# Core exports
from .core import (
    ConnectionHealthMonitor,
    ConnectionState,
    DeliveryOutcome,
    EventCache,
    EventRelay,
    SessionState,
    SimulationEventObserver,
    SnapshotAggregator,
)
from .config import Config, RelayConfig, load_config
from .schemas import Event, EventType, SchemaRegistry, WorldSnapshot, default_registry
from .simulation import InMemoryClient, SimulationClient, SimulationThread

__all__ = [
    "Config",
    "ConnectionHealthMonitor",
    "ConnectionState",
    "DeliveryOutcome",
    "Event",
    "EventCache",
    "EventRelay",
    "EventType",
    "InMemoryClient",
    "RelayConfig",
    "SchemaRegistry",
    "SessionState",
    "SimulationClient",
    "SimulationEventObserver",
    "SimulationThread",
    "SnapshotAggregator",
    "WorldSnapshot",
    "default_registry",
    "load_config",
]
