# Event and snapshot schemas

from .events import SESSION_EVENT_TYPES, UNKNOWN_SUBJECT, Event, EventType
from .registry import DEFAULT_SCHEMAS, SchemaRegistry, default_registry
from .snapshot import (
    BoundingBox,
    CellEntity,
    CellInfo,
    GroundItemInfo,
    NpcInfo,
    ObjectInfo,
    PlayerState,
    Position,
    SceneCoordinates,
    WorldSnapshot,
    cell_key,
)

__all__ = [
    "DEFAULT_SCHEMAS",
    "SESSION_EVENT_TYPES",
    "UNKNOWN_SUBJECT",
    "BoundingBox",
    "CellEntity",
    "CellInfo",
    "Event",
    "EventType",
    "GroundItemInfo",
    "NpcInfo",
    "ObjectInfo",
    "PlayerState",
    "Position",
    "SceneCoordinates",
    "SchemaRegistry",
    "WorldSnapshot",
    "cell_key",
    "default_registry",
]
