"""Pydantic models for point-in-time world snapshots."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SnapshotModel(BaseModel):
    """Base for snapshot models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Position(SnapshotModel):
    """World position of a cell or entity."""

    x: int
    y: int
    plane: int


class SceneCoordinates(SnapshotModel):
    x: int
    y: int


class BoundingBox(SnapshotModel):
    """Axis-aligned rectangle in canvas space."""

    x: int
    y: int
    width: int
    height: int


class CellEntity(SnapshotModel):
    """Something standing or lying on a cell."""

    type: Literal["PLAYER", "NPC", "OBJECT", "GROUND_ITEM"]
    id: int
    quantity: int | None = Field(default=None, description="Ground item stack size")


class CellInfo(SnapshotModel):
    """Projected, in-range world cell."""

    scene_coordinates: SceneCoordinates
    vertices: list[tuple[int, int]] = Field(
        ..., description="Boundary polygon vertices in canvas space"
    )
    bounding_rect: BoundingBox
    entities: list[CellEntity] = Field(default_factory=list)
    walkable: bool = False


class NpcInfo(SnapshotModel):
    npc_id: int
    npc_name: str | None
    bounding_box: BoundingBox | None
    world_position: Position


class ObjectInfo(SnapshotModel):
    id: int
    bounding_box: BoundingBox | None


class GroundItemInfo(SnapshotModel):
    id: int
    quantity: int
    cell_world_position: Position


class PlayerState(SnapshotModel):
    """Observed entity's name, position and footprint."""

    player_name: str | None
    world_position: Position | None = None
    occupied_cells: list[Position] = Field(default_factory=list)


class WorldSnapshot(SnapshotModel):
    """Everything visible around the observed entity at one instant.

    Produced fresh on every query and never cached: the world changes every
    simulation tick.
    """

    player: PlayerState | None = None
    npcs: list[NpcInfo] = Field(default_factory=list)
    objects: list[ObjectInfo] = Field(default_factory=list)
    ground_items: list[GroundItemInfo] = Field(default_factory=list)
    cells: dict[str, CellInfo] = Field(
        default_factory=dict, description="Cell key 'x,y,plane' to cell info"
    )


def cell_key(x: int, y: int, plane: int) -> str:
    """Composite key identifying one world cell."""
    return f"{x},{y},{plane}"
