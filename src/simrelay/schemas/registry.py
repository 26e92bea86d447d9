"""Static registry describing the payload fields of every event type.

The registry only serves discoverability (the introspection server lists and
describes it); it is never consulted on the delivery path.
"""

from collections.abc import Iterator, Mapping
from types import MappingProxyType

from simrelay.schemas.events import EventType
from simrelay.utils.errors import UnknownEventTypeError

DEFAULT_SCHEMAS: dict[EventType, dict[str, str]] = {
    EventType.GAME_STATE_CHANGED: {"gameState": "string"},
    EventType.STAT_CHANGED: {
        "skill": "string",
        "xp": "long",
        "level": "int",
        "boostedLevel": "int",
    },
    EventType.ACTOR_DEATH: {"actorName": "string", "boundingBox": "object"},
    EventType.HITSPLAT_APPLIED: {
        "actorName": "string",
        "hitsplatType": "int",
        "amount": "int",
        "boundingBox": "object",
    },
    EventType.NPC_SPAWNED: {"npcId": "int", "npcName": "string", "boundingBox": "object"},
    EventType.NPC_DESPAWNED: {"npcId": "int", "npcName": "string"},
    EventType.ITEM_CONTAINER_CHANGED: {"containerId": "int", "itemCount": "int"},
    EventType.CHAT_MESSAGE: {"type": "string", "name": "string", "message": "string"},
    EventType.SESSION_STARTED: {},
    EventType.SESSION_CLOSED: {},
    EventType.ACTOR_POSITION_UPDATE: {
        "actorName": "string",
        "actorId": "int",
        "boundingBox": "object",
        "worldViewId": "int",
    },
}


class SchemaRegistry:
    """Event-type name to field schema mapping.

    Entries are registered at startup and the registry is then frozen; it is
    read concurrently by request handlers afterwards.
    """

    def __init__(self) -> None:
        self._schemas: dict[str, Mapping[str, str]] = {}
        self._frozen = False

    def register(self, event_type: EventType | str, fields: Mapping[str, str]) -> None:
        """Register the field schema of an event type.

        Raises:
            RuntimeError: If the registry has already been frozen
        """
        if self._frozen:
            raise RuntimeError("Schema registry is frozen")
        name = event_type.value if isinstance(event_type, EventType) else event_type
        self._schemas[name] = MappingProxyType(dict(fields))

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, event_type: str) -> Mapping[str, str]:
        """Get the field schema for an event type.

        Raises:
            UnknownEventTypeError: If no schema is registered under that name
        """
        try:
            return self._schemas[event_type]
        except KeyError:
            raise UnknownEventTypeError(event_type) from None

    def event_types(self) -> list[str]:
        """Registered event type names, sorted."""
        return sorted(self._schemas)

    def __contains__(self, event_type: object) -> bool:
        if isinstance(event_type, EventType):
            event_type = event_type.value
        return event_type in self._schemas

    def __iter__(self) -> Iterator[str]:
        return iter(self.event_types())

    def __len__(self) -> int:
        return len(self._schemas)


def default_registry() -> SchemaRegistry:
    """Create a frozen registry holding the schema of every built-in event type."""
    registry = SchemaRegistry()
    for event_type, fields in DEFAULT_SCHEMAS.items():
        registry.register(event_type, fields)
    registry.freeze()
    return registry
