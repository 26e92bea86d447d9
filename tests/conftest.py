"""Shared fixtures: a fake collector and small simulated worlds."""

import json
import threading
import time
from collections.abc import Callable

import httpx
import pytest

from simrelay.simulation.model import (
    TOP_LEVEL_WORLD_VIEW_ID,
    CollisionMap,
    InMemoryClient,
    LocalPoint,
    Npc,
    Player,
    Polygon,
    Scene,
    WorldPoint,
    WorldView,
)

WORLD_BASE = (3200, 3200)
WORLD_SIZE = 16


class FakeCollector:
    """In-process stand-in for the external collector.

    ``mode`` is one of ``up`` (2xx for everything), ``down`` (connection
    refused) or ``reject`` (HEAD succeeds, POST answers 500).
    """

    def __init__(self, mode: str = "up") -> None:
        self.mode = mode
        self.posts: list[dict] = []
        self.heads = 0
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.mode == "down":
            raise httpx.ConnectError("Connection refused", request=request)
        if request.method == "HEAD":
            with self._lock:
                self.heads += 1
            return httpx.Response(200)
        if self.mode == "reject":
            return httpx.Response(500)
        with self._lock:
            self.posts.append(json.loads(request.content))
        return httpx.Response(200)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def event_types(self) -> list[str]:
        with self._lock:
            return [post["eventType"] for post in self.posts]


def _wait_until(
    predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01
) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def square(local: LocalPoint, half: int = 40) -> Polygon:
    return Polygon(
        (
            (local.x - half, local.y - half),
            (local.x + half, local.y - half),
            (local.x + half, local.y + half),
            (local.x - half, local.y + half),
        )
    )


def make_actor(
    cls: type, actor_id: int, name: str | None, scene_x: int, scene_y: int, plane: int = 0
):
    local = LocalPoint.from_scene(scene_x, scene_y)
    return cls(
        id=actor_id,
        name=name,
        world_location=WorldPoint(WORLD_BASE[0] + scene_x, WORLD_BASE[1] + scene_y, plane),
        local_location=local,
        convex_hull=square(local),
    )


def make_world(
    player_at: tuple[int, int] | None = (8, 8),
    npcs: list[Npc] | None = None,
) -> InMemoryClient:
    """Fully loaded plane-0 scene with an open collision map."""
    scene = Scene.filled(*WORLD_BASE, size=WORLD_SIZE)
    player = None
    players: list[Player | None] = []
    if player_at is not None:
        player = make_actor(Player, 1, "tester", *player_at)
        players.append(player)

    world_view = WorldView(
        id=TOP_LEVEL_WORLD_VIEW_ID,
        plane=0,
        scene=scene,
        npcs=list(npcs or []),
        players=players,
    )
    return InMemoryClient(
        player=player,
        world_views={TOP_LEVEL_WORLD_VIEW_ID: world_view},
        collision=[CollisionMap.open(WORLD_SIZE)],
        # Every cell projects; 128px per cell keeps polygons aligned with local points
        projector=lambda local: square(local, 64),
    )


@pytest.fixture
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture
def world() -> InMemoryClient:
    return make_world(npcs=[make_actor(Npc, 3010, "Guard", 9, 8)])


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    return _wait_until


@pytest.fixture
def world_builder() -> Callable[..., InMemoryClient]:
    return make_world


@pytest.fixture
def actor_builder() -> Callable[..., object]:
    return make_actor
