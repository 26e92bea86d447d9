"""Simulation event hooks translating host callbacks into relay events.

The host calls these on its simulation thread. Each hook builds the payload
for one event type and hands it to ``EventRelay.emit``; a failing hook is
logged and never propagates into the host.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from simrelay.config.config import EventsConfig
from simrelay.core.relay import EventRelay
from simrelay.core.snapshot import bounding_box
from simrelay.schemas.events import EventType
from simrelay.simulation.model import Actor, Npc, SimulationClient
from simrelay.utils.telemetry import get_logger

# World views polled for per-tick position updates
POSITION_WORLD_VIEW_IDS = range(-1, 2)

F = TypeVar("F", bound=Callable[..., Any])

logger = get_logger("simrelay.ingest")


def _guarded(hook: F) -> F:
    @wraps(hook)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return hook(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Simulation hook failed",
                hook=hook.__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    return wrapper  # type: ignore[return-value]


def _bounding_box(actor: Actor) -> dict[str, Any] | None:
    box = bounding_box(actor.convex_hull)
    return box.to_json_dict() if box is not None else None


class SimulationEventObserver:
    """Host-facing hooks, one per observed simulation event."""

    def __init__(
        self,
        relay: EventRelay,
        client: SimulationClient | None = None,
        events: EventsConfig | None = None,
    ):
        """Initialize the observer.

        Args:
            relay: Relay receiving the events
            client: Simulation state used by per-tick polling
            events: Optional event sources (defaults to the relay's config)
        """
        self.relay = relay
        self.client = client if client is not None else relay.simulation
        self.events = events or relay.config.events

    @_guarded
    def on_game_state_changed(self, game_state: str) -> None:
        self.relay.emit(EventType.GAME_STATE_CHANGED, {"gameState": str(game_state)})

    @_guarded
    def on_stat_changed(self, skill: str, xp: int, level: int, boosted_level: int) -> None:
        self.relay.emit(
            EventType.STAT_CHANGED,
            {"skill": skill, "xp": xp, "level": level, "boostedLevel": boosted_level},
        )

    @_guarded
    def on_actor_death(self, actor: Actor) -> None:
        self.relay.emit(
            EventType.ACTOR_DEATH,
            {"actorName": actor.name, "boundingBox": _bounding_box(actor)},
        )

    @_guarded
    def on_hitsplat_applied(self, actor: Actor, hitsplat_type: int, amount: int) -> None:
        self.relay.emit(
            EventType.HITSPLAT_APPLIED,
            {
                "actorName": actor.name,
                "hitsplatType": hitsplat_type,
                "amount": amount,
                "boundingBox": _bounding_box(actor),
            },
        )

    @_guarded
    def on_npc_spawned(self, npc: Npc) -> None:
        self.relay.emit(
            EventType.NPC_SPAWNED,
            {"npcId": npc.id, "npcName": npc.name, "boundingBox": _bounding_box(npc)},
        )

    @_guarded
    def on_npc_despawned(self, npc: Npc) -> None:
        self.relay.emit(EventType.NPC_DESPAWNED, {"npcId": npc.id, "npcName": npc.name})

    @_guarded
    def on_item_container_changed(self, container_id: int, item_count: int) -> None:
        self.relay.emit(
            EventType.ITEM_CONTAINER_CHANGED,
            {"containerId": container_id, "itemCount": item_count},
        )

    @_guarded
    def on_chat_message(self, message_type: str, name: str, message: str) -> None:
        self.relay.emit(
            EventType.CHAT_MESSAGE,
            {"type": str(message_type), "name": name, "message": message},
        )

    @_guarded
    def on_tick(self) -> int:
        """Emit position updates for every NPC of the polled world views.

        Returns:
            Number of position updates emitted
        """
        if not self.events.push_actor_position_updates or self.client is None:
            return 0

        emitted = 0
        for world_view_id in POSITION_WORLD_VIEW_IDS:
            world_view = self.client.world_view(world_view_id)
            if world_view is None:
                continue
            for npc in world_view.npcs:
                if npc is None:
                    continue
                self.relay.emit(
                    EventType.ACTOR_POSITION_UPDATE,
                    {
                        "actorName": npc.name,
                        "actorId": npc.id,
                        "boundingBox": _bounding_box(npc),
                        "worldViewId": world_view_id,
                    },
                )
                emitted += 1
        return emitted
