"""Entry point for the `simrelay` command and `python -m simrelay.cli`."""

import asyncio
import json
import os
import signal
import threading
import time
from pathlib import Path

import click
import httpx

from simrelay import __version__
from simrelay.cli.config import config_group
from simrelay.config import ConfigError, load_config, validate_config
from simrelay.core.delivery import DeliveryPipeline
from simrelay.core.ingest import SimulationEventObserver
from simrelay.core.relay import EventRelay
from simrelay.core.session import SessionState
from simrelay.schemas.registry import default_registry
from simrelay.simulation.model import (
    TOP_LEVEL_WORLD_VIEW_ID,
    CollisionMap,
    GameObject,
    InMemoryClient,
    LocalPoint,
    Npc,
    Player,
    Polygon,
    Scene,
    TileItem,
    WorldPoint,
    WorldView,
)
from simrelay.simulation.thread import SimulationThread
from simrelay.utils.errors import UnknownEventTypeError
from simrelay.utils.telemetry import get_logger, setup_logging, setup_tracing

DEMO_ORIGIN = (3200, 3200)
DEMO_SCENE_SIZE = 24


@click.group()
def main() -> None:
    """simrelay - simulation event relay."""


main.add_command(config_group)


@main.command()
def version() -> None:
    """Show version information."""
    click.echo(f"simrelay {__version__}")


@main.command()
@click.argument("event_type", required=False)
def schemas(event_type: str | None) -> None:
    """List event types, or show the field schema of one."""
    registry = default_registry()
    if event_type is None:
        for name in registry.event_types():
            click.echo(name)
        return

    try:
        fields = registry.get(event_type)
    except UnknownEventTypeError as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(dict(fields), indent=2))


async def _probe(url: str, timeout: float) -> bool:
    async with httpx.AsyncClient(timeout=timeout) as client:
        pipeline = DeliveryPipeline(SessionState(), client, url)
        return await pipeline.probe()


@main.command()
@click.argument("url", required=False)
@click.option("--timeout", default=10.0, show_default=True, help="Request timeout in seconds")
def probe(url: str | None, timeout: float) -> None:
    """Send a liveness probe to the collector."""
    if url is None:
        url = load_config().connection.collector_url

    if asyncio.run(_probe(url, timeout)):
        click.echo(f"✓ Collector reachable: {url}")
        return
    raise click.ClickException(f"Collector unreachable: {url}")


def build_demo_client() -> InMemoryClient:
    """Small static world: one player, two NPCs, an object and a ground item."""
    base_x, base_y = DEMO_ORIGIN
    scene = Scene.filled(base_x, base_y, size=DEMO_SCENE_SIZE)
    centre = DEMO_SCENE_SIZE // 2

    def actor_at(cls: type, actor_id: int, name: str, dx: int, dy: int):
        local = LocalPoint.from_scene(centre + dx, centre + dy)
        hull = Polygon(
            (
                (local.x - 40, local.y - 40),
                (local.x + 40, local.y - 40),
                (local.x + 40, local.y + 40),
                (local.x - 40, local.y + 40),
            )
        )
        return cls(
            id=actor_id,
            name=name,
            world_location=WorldPoint(base_x + centre + dx, base_y + centre + dy, 0),
            local_location=local,
            convex_hull=hull,
        )

    player = actor_at(Player, 0, "demo_player", 0, 0)
    npcs = [actor_at(Npc, 3010, "Guard", 2, 1), actor_at(Npc, 1118, "Goblin", -3, 2)]

    tile = scene.tile(0, centre + 1, centre - 1)
    if tile is not None:
        tile.game_objects.append(GameObject(id=1276))
        tile.ground_items = [TileItem(id=995, quantity=25)]

    world_view = WorldView(
        id=TOP_LEVEL_WORLD_VIEW_ID, plane=0, scene=scene, npcs=npcs, players=[player]
    )
    return InMemoryClient(
        player=player,
        world_views={TOP_LEVEL_WORLD_VIEW_ID: world_view},
        collision=[CollisionMap.open(DEMO_SCENE_SIZE)],
    )


@main.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("--tick", default=0.6, show_default=True, help="Demo tick interval in seconds")
def serve(config_path: Path | None, tick: float) -> None:
    """Run the relay against a static demo world until interrupted."""
    try:
        config = load_config(config_path)
        validate_config(config)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    features = config.features
    setup_logging(
        config.logging.level,
        enable_pii_redaction=config.logging.enable_pii_redaction and features.pii_redaction,
        fmt=config.logging.format if features.structured_logging else "text",
    )
    if features.tracing:
        setup_tracing(otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"))
    logger = get_logger("simrelay.cli")

    client = build_demo_client()
    simulation_thread = SimulationThread()
    relay = EventRelay(
        config,
        simulation=client,
        simulation_thread=simulation_thread,
        metrics_endpoint=config.metrics.enabled and features.metrics_export,
    )
    observer = SimulationEventObserver(relay)

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    relay.start()
    simulation_thread.bind()
    observer.on_game_state_changed("LOGGED_IN")
    logger.info(
        "Demo relay running",
        collector_url=config.connection.collector_url,
        introspection_port=config.introspection.port,
    )

    try:
        while not stop.is_set():
            simulation_thread.run_pending()
            observer.on_tick()
            time.sleep(tick)
    except KeyboardInterrupt:
        pass
    finally:
        relay.stop()
        logger.info("Demo relay stopped")


if __name__ == "__main__":
    main()
