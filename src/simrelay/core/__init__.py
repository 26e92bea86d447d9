"""Relay core: event cache, delivery, connection health and snapshots."""

from simrelay.core.delivery import DeliveryMode, DeliveryOutcome, DeliveryPipeline
from simrelay.core.event_cache import EventCache
from simrelay.core.health import ConnectionHealthMonitor
from simrelay.core.ingest import SimulationEventObserver
from simrelay.core.relay import EventRelay, RelayLoop
from simrelay.core.session import ConnectionState, SessionState
from simrelay.core.snapshot import SnapshotAggregator

__all__ = [
    "ConnectionHealthMonitor",
    "ConnectionState",
    "DeliveryMode",
    "DeliveryOutcome",
    "DeliveryPipeline",
    "EventCache",
    "EventRelay",
    "RelayLoop",
    "SessionState",
    "SimulationEventObserver",
    "SnapshotAggregator",
]
