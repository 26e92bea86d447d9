"""Point-in-time world snapshots read on the simulation thread.

The aggregator packages each read as one unit of work and hands it to the
``SimulationThread``. All reads for a snapshot happen inside that single
execution, so the result cannot interleave with the simulation's own
mutation of the world.
"""

from typing import Any

from simrelay.schemas.snapshot import (
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
from simrelay.simulation.model import (
    CollisionMap,
    Player,
    Polygon,
    SimulationClient,
    Tile,
    WorldPoint,
    WorldView,
)
from simrelay.simulation.thread import SimulationThread
from simrelay.utils.telemetry import PerformanceTimer, get_logger

# Fewer vertices than this means the cell is offscreen or degenerate
MIN_CELL_VERTICES = 4


def bounding_box(shape: Polygon | None) -> BoundingBox | None:
    """Canvas bounding box of a hull or clickbox, None when not rendered."""
    if shape is None:
        return None
    bounds = shape.bounds()
    return BoundingBox(x=bounds.x, y=bounds.y, width=bounds.width, height=bounds.height)


def position_of(point: WorldPoint) -> Position:
    return Position(x=point.x, y=point.y, plane=point.plane)


def player_state(player: Player | None) -> PlayerState | None:
    """Name, world position and occupied cells of the observed entity."""
    if player is None:
        return None
    location = player.world_location
    return PlayerState(
        player_name=player.name,
        world_position=position_of(location) if location is not None else None,
        occupied_cells=[position_of(cell) for cell in player.world_area.cells()]
        if location is not None
        else [],
    )


class SnapshotAggregator:
    """Builds ``WorldSnapshot`` objects around the observed entity."""

    def __init__(
        self,
        client: SimulationClient,
        simulation_thread: SimulationThread,
        *,
        render_radius: int = 5,
        timeout: float = 5.0,
    ):
        """Initialize snapshot aggregator.

        Args:
            client: Read access to simulation state (simulation thread only)
            simulation_thread: Hand-off to the simulation thread
            render_radius: Cell radius around the observed entity; <= 0 disables filtering
            timeout: Bounded wait for the simulation thread, in seconds
        """
        self.client = client
        self.simulation_thread = simulation_thread
        self.render_radius = render_radius
        self.timeout = timeout
        self.logger = get_logger("simrelay.snapshot")

    def capture_snapshot(self) -> WorldSnapshot:
        """Capture the visible world without the player block.

        Raises:
            SimulationTimeoutError: If the simulation thread does not respond in time
            SimulationReadError: If the read fails on the simulation thread
        """
        return self._call(self.read_world, "capture_snapshot")

    def capture_player_state(self) -> PlayerState | None:
        """Capture the observed entity's state, None when no entity is loaded."""
        return self._call(lambda: player_state(self.client.local_player), "capture_player_state")

    def capture_all(self) -> dict[str, Any]:
        """Player state merged with the world snapshot, read in one hand-off."""

        def read() -> WorldSnapshot:
            snapshot = self.read_world()
            snapshot.player = player_state(self.client.local_player)
            return snapshot

        snapshot = self._call(read, "capture_all")
        data = snapshot.to_json_dict()
        data["player"] = data["player"] or {}
        return data

    def read_world(self) -> WorldSnapshot:
        """Read the world; must run on the simulation thread."""
        world_view = self.client.top_level_world_view()
        if world_view is None:
            return WorldSnapshot()

        player = self.client.local_player
        origin = player.world_location if player is not None else None

        snapshot = WorldSnapshot(npcs=self._collect_npcs(world_view))

        collision = self.client.collision_maps()
        for tile in world_view.scene.iter_plane(world_view.plane):
            if not self._in_range(origin, tile.world_location):
                continue
            cell = self._read_cell(tile, world_view, collision, snapshot)
            if cell is not None:
                location = tile.world_location
                snapshot.cells[cell_key(location.x, location.y, location.plane)] = cell

        return snapshot

    def _call(self, fn: Any, operation: str) -> Any:
        with PerformanceTimer(operation, logger=self.logger, radius=self.render_radius):
            return self.simulation_thread.call(fn, timeout=self.timeout, operation=operation)

    def _in_range(self, origin: WorldPoint | None, location: WorldPoint) -> bool:
        if self.render_radius <= 0 or origin is None:
            return True
        return origin.distance_to(location) <= self.render_radius

    def _collect_npcs(self, world_view: WorldView) -> list[NpcInfo]:
        return [
            NpcInfo(
                npc_id=npc.id,
                npc_name=npc.name,
                bounding_box=bounding_box(npc.convex_hull),
                world_position=position_of(npc.world_location),
            )
            for npc in world_view.npcs
            if npc is not None
        ]

    def _read_cell(
        self,
        tile: Tile,
        world_view: WorldView,
        collision: list[CollisionMap] | None,
        snapshot: WorldSnapshot,
    ) -> CellInfo | None:
        polygon = self.client.tile_polygon(tile.local_location)
        if polygon is None or polygon.npoints < MIN_CELL_VERTICES:
            return None

        entities: list[CellEntity] = []
        entities.extend(self._actors_on(tile, world_view.players, "PLAYER"))
        entities.extend(self._actors_on(tile, world_view.npcs, "NPC"))

        for game_object in tile.game_objects:
            if game_object is None:
                continue
            entities.append(CellEntity(type="OBJECT", id=game_object.id))
            snapshot.objects.append(
                ObjectInfo(id=game_object.id, bounding_box=bounding_box(game_object.clickbox))
            )

        for item in tile.ground_items or []:
            entities.append(CellEntity(type="GROUND_ITEM", id=item.id, quantity=item.quantity))
            snapshot.ground_items.append(
                GroundItemInfo(
                    id=item.id,
                    quantity=item.quantity,
                    cell_world_position=position_of(tile.world_location),
                )
            )

        scene = tile.scene_location
        bounds = bounding_box(polygon)
        assert bounds is not None
        return CellInfo(
            scene_coordinates=SceneCoordinates(x=scene.x, y=scene.y),
            vertices=list(polygon.vertices),
            bounding_rect=bounds,
            entities=entities,
            walkable=self._walkable(tile, world_view.plane, collision),
        )

    @staticmethod
    def _actors_on(tile: Tile, actors: list[Any], kind: str) -> list[CellEntity]:
        local = tile.local_location
        return [
            CellEntity(type=kind, id=actor.id)
            for actor in actors
            if actor is not None and actor.local_location == local
        ]

    @staticmethod
    def _walkable(tile: Tile, plane: int, collision: list[CollisionMap] | None) -> bool:
        if collision is None or plane >= len(collision):
            return False
        scene = tile.scene_location
        return collision[plane].is_walkable(scene.x, scene.y)
