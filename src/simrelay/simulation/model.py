"""Simulation boundary: geometry value types and the observable world model.

The relay never owns simulation state. It reads it through the
``SimulationClient`` protocol, and only from the simulation thread. The
dataclasses here describe the shapes the relay expects; ``InMemoryClient`` is
a reference implementation a host (or a test) can populate directly.
"""

import sys
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

TOP_LEVEL_WORLD_VIEW_ID = -1
SCENE_SIZE = 104
LOCAL_TILE_SIZE = 128

# Collision flag bit marking a blocked cell
BLOCK_MOVEMENT_FLAG = 0x1


@dataclass(frozen=True, slots=True)
class WorldPoint:
    """Absolute world cell address."""

    x: int
    y: int
    plane: int

    def distance_to(self, other: "WorldPoint") -> int:
        """Chebyshev distance in cells; effectively infinite across planes."""
        if self.plane != other.plane:
            return sys.maxsize
        return max(abs(self.x - other.x), abs(self.y - other.y))


@dataclass(frozen=True, slots=True)
class LocalPoint:
    """Sub-cell position inside the loaded scene."""

    x: int
    y: int

    @classmethod
    def from_scene(cls, scene_x: int, scene_y: int) -> "LocalPoint":
        """Centre of the given scene cell."""
        half = LOCAL_TILE_SIZE // 2
        return cls(scene_x * LOCAL_TILE_SIZE + half, scene_y * LOCAL_TILE_SIZE + half)

    @property
    def scene_x(self) -> int:
        return self.x // LOCAL_TILE_SIZE

    @property
    def scene_y(self) -> int:
        return self.y // LOCAL_TILE_SIZE


@dataclass(frozen=True, slots=True)
class ScenePoint:
    x: int
    y: int


@dataclass(frozen=True, slots=True)
class Rect:
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class Polygon:
    """Closed polygon in canvas space."""

    vertices: tuple[tuple[int, int], ...]

    @property
    def npoints(self) -> int:
        return len(self.vertices)

    def bounds(self) -> Rect:
        """Smallest axis-aligned rectangle enclosing every vertex."""
        if not self.vertices:
            return Rect(0, 0, 0, 0)
        xs = [vx for vx, _ in self.vertices]
        ys = [vy for _, vy in self.vertices]
        return Rect(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))


@dataclass(frozen=True, slots=True)
class WorldArea:
    """Rectangle of world cells on one plane."""

    x: int
    y: int
    width: int
    height: int
    plane: int

    def cells(self) -> list[WorldPoint]:
        return [
            WorldPoint(self.x + dx, self.y + dy, self.plane)
            for dx in range(self.width)
            for dy in range(self.height)
        ]


@dataclass(eq=False)
class Actor:
    """Anything that moves: the observed player, other players, NPCs."""

    id: int
    name: str | None
    world_location: WorldPoint
    local_location: LocalPoint
    convex_hull: Polygon | None = None
    size: int = 1

    @property
    def world_area(self) -> WorldArea:
        return WorldArea(
            self.world_location.x,
            self.world_location.y,
            self.size,
            self.size,
            self.world_location.plane,
        )


@dataclass(eq=False)
class Player(Actor):
    pass


@dataclass(eq=False)
class Npc(Actor):
    pass


@dataclass(eq=False)
class GameObject:
    id: int
    clickbox: Polygon | None = None


@dataclass(eq=False)
class TileItem:
    id: int
    quantity: int = 1


@dataclass(eq=False)
class Tile:
    """One loaded world cell with whatever sits on it."""

    world_location: WorldPoint
    scene_location: ScenePoint
    game_objects: list[GameObject | None] = field(default_factory=list)
    ground_items: list[TileItem] | None = None

    @property
    def local_location(self) -> LocalPoint:
        return LocalPoint.from_scene(self.scene_location.x, self.scene_location.y)


@dataclass(eq=False)
class Scene:
    """Loaded region of the world, addressed by (plane, scene x, scene y)."""

    size: int = SCENE_SIZE
    tiles: dict[tuple[int, int, int], Tile] = field(default_factory=dict)

    def tile(self, plane: int, x: int, y: int) -> Tile | None:
        return self.tiles.get((plane, x, y))

    def add_tile(self, plane: int, tile: Tile) -> Tile:
        self.tiles[(plane, tile.scene_location.x, tile.scene_location.y)] = tile
        return tile

    def iter_plane(self, plane: int) -> Iterator[Tile]:
        """Tiles of one plane in scene order (x-major, then y)."""
        for x in range(self.size):
            for y in range(self.size):
                tile = self.tiles.get((plane, x, y))
                if tile is not None:
                    yield tile

    @classmethod
    def filled(cls, base_x: int, base_y: int, plane: int = 0, size: int = SCENE_SIZE) -> "Scene":
        """Scene whose every cell of ``plane`` is loaded, anchored at a world origin."""
        scene = cls(size=size)
        for x in range(size):
            for y in range(size):
                scene.add_tile(
                    plane,
                    Tile(
                        world_location=WorldPoint(base_x + x, base_y + y, plane),
                        scene_location=ScenePoint(x, y),
                    ),
                )
        return scene


@dataclass(eq=False)
class CollisionMap:
    """Per-cell collision flags of one plane, indexed ``flags[x][y]``."""

    flags: list[list[int]]

    @classmethod
    def open(cls, size: int = SCENE_SIZE) -> "CollisionMap":
        return cls([[0] * size for _ in range(size)])

    def is_walkable(self, x: int, y: int) -> bool:
        return (self.flags[x][y] & BLOCK_MOVEMENT_FLAG) == 0


@dataclass(eq=False)
class WorldView:
    id: int
    plane: int
    scene: Scene
    npcs: list[Npc | None] = field(default_factory=list)
    players: list[Player | None] = field(default_factory=list)


@runtime_checkable
class SimulationClient(Protocol):
    """Read access to live simulation state.

    Every method must only be called from the simulation thread.
    """

    @property
    def local_player(self) -> Player | None: ...

    def top_level_world_view(self) -> WorldView | None: ...

    def world_view(self, world_view_id: int) -> WorldView | None: ...

    def collision_maps(self) -> list[CollisionMap] | None: ...

    def tile_polygon(self, local_point: LocalPoint) -> Polygon | None: ...


TileProjector = Callable[[LocalPoint], Polygon | None]


def grid_projector(
    cell_size: int = 32, viewport: Rect = Rect(0, 0, 765, 503), origin: tuple[int, int] = (0, 0)
) -> TileProjector:
    """Top-down projector mapping scene cells to square canvas polygons.

    Cells whose square falls outside ``viewport`` are offscreen and project to
    ``None``.
    """

    def project(local_point: LocalPoint) -> Polygon | None:
        left = local_point.scene_x * cell_size - origin[0]
        top = local_point.scene_y * cell_size - origin[1]
        right = left + cell_size
        bottom = top + cell_size
        if (
            left < viewport.x
            or top < viewport.y
            or right > viewport.x + viewport.width
            or bottom > viewport.y + viewport.height
        ):
            return None
        return Polygon(((left, top), (right, top), (right, bottom), (left, bottom)))

    return project


@dataclass(eq=False)
class InMemoryClient:
    """Reference ``SimulationClient`` backed by plain dataclasses."""

    player: Player | None = None
    world_views: dict[int, WorldView] = field(default_factory=dict)
    collision: list[CollisionMap] | None = None
    projector: TileProjector = field(default_factory=grid_projector)

    @property
    def local_player(self) -> Player | None:
        return self.player

    def top_level_world_view(self) -> WorldView | None:
        return self.world_views.get(TOP_LEVEL_WORLD_VIEW_ID)

    def world_view(self, world_view_id: int) -> WorldView | None:
        return self.world_views.get(world_view_id)

    def collision_maps(self) -> list[CollisionMap] | None:
        return self.collision

    def tile_polygon(self, local_point: LocalPoint) -> Polygon | None:
        return self.projector(local_point)
