"""Event model shared by the cache, the delivery pipeline and the HTTP surface."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

UNKNOWN_SUBJECT = "N/A"

_PAYLOAD_ADAPTER = TypeAdapter(dict[str, Any])


class EventType(str, Enum):
    """Fixed set of event types the relay forwards."""

    GAME_STATE_CHANGED = "GAME_STATE_CHANGED"
    STAT_CHANGED = "STAT_CHANGED"
    ACTOR_DEATH = "ACTOR_DEATH"
    HITSPLAT_APPLIED = "HITSPLAT_APPLIED"
    NPC_SPAWNED = "NPC_SPAWNED"
    NPC_DESPAWNED = "NPC_DESPAWNED"
    ITEM_CONTAINER_CHANGED = "ITEM_CONTAINER_CHANGED"
    CHAT_MESSAGE = "CHAT_MESSAGE"
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_CLOSED = "SESSION_CLOSED"
    ACTOR_POSITION_UPDATE = "ACTOR_POSITION_UPDATE"


SESSION_EVENT_TYPES = frozenset({EventType.SESSION_STARTED, EventType.SESSION_CLOSED})


class Event(BaseModel):
    """A single observed simulation event.

    Events are immutable once created. ``create`` copies the payload into its
    JSON form (datetimes, enums and nested models become plain values), so
    later mutation of the caller's mapping cannot leak into the cache and every
    cached event can be posted.
    """

    timestamp: datetime = Field(..., description="UTC instant of emission")
    subject_name: str = Field(
        default=UNKNOWN_SUBJECT, description="Name of the observed entity"
    )
    event_type: EventType = Field(..., description="Type of event")
    payload: dict[str, Any] = Field(
        default_factory=dict, description="Ordered field-name to value mapping"
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def create(
        cls,
        event_type: EventType,
        payload: dict[str, Any] | None = None,
        subject_name: str | None = None,
    ) -> "Event":
        """Create an event stamped with the current UTC time.

        Raises:
            ValueError: If a payload value has no JSON representation
        """
        return cls(
            timestamp=datetime.now(UTC),
            subject_name=subject_name or UNKNOWN_SUBJECT,
            event_type=event_type,
            payload=_PAYLOAD_ADAPTER.dump_python(dict(payload or {}), mode="json"),
        )

    def to_wire(self) -> dict[str, Any]:
        """Render the collector wire format.

        Returns:
            ``{timestamp, subjectName, eventType, eventData}``, JSON-serializable
        """
        return {
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
            "subjectName": self.subject_name,
            "eventType": self.event_type.value,
            "eventData": _PAYLOAD_ADAPTER.dump_python(self.payload, mode="json"),
        }
