# Simulation boundary: world model protocols and the simulation thread

from .model import (
    SCENE_SIZE,
    TOP_LEVEL_WORLD_VIEW_ID,
    Actor,
    CollisionMap,
    GameObject,
    InMemoryClient,
    LocalPoint,
    Npc,
    Player,
    Polygon,
    Rect,
    Scene,
    ScenePoint,
    SimulationClient,
    Tile,
    TileItem,
    WorldArea,
    WorldPoint,
    WorldView,
    grid_projector,
)
from .thread import SimulationThread

__all__ = [
    "SCENE_SIZE",
    "TOP_LEVEL_WORLD_VIEW_ID",
    "Actor",
    "CollisionMap",
    "GameObject",
    "InMemoryClient",
    "LocalPoint",
    "Npc",
    "Player",
    "Polygon",
    "Rect",
    "Scene",
    "ScenePoint",
    "SimulationClient",
    "SimulationThread",
    "Tile",
    "TileItem",
    "WorldArea",
    "WorldPoint",
    "WorldView",
    "grid_projector",
]
