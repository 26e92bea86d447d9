"""FastAPI introspection server.

Read-only HTTP surface over the relay: cached events, event schemas, connection
status and on-demand world snapshots. Snapshot handlers are plain ``def``
endpoints so they run in FastAPI's worker threadpool and block there on the
simulation thread hand-off, never on the server's event loop.
"""

from typing import Any

from fastapi import FastAPI, HTTPException, status
from fastapi.responses import HTMLResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from simrelay.core.session import SessionState
from simrelay.core.snapshot import SnapshotAggregator
from simrelay.schemas.registry import SchemaRegistry
from simrelay.utils.errors import (
    SimulationReadError,
    SimulationTimeoutError,
    UnknownEventTypeError,
)
from simrelay.utils.telemetry import get_logger

API_DESCRIPTION = "Simulation event relay"

ENDPOINTS = {
    "/api": "This JSON index.",
    "/api/client/session": "GET a JSON array of all cached game events.",
    "/api/state/player": "GET the observed player's name, position and occupied cells.",
    "/api/all_game_data": (
        "GET a single JSON object containing all visible game data "
        "(player, tiles, NPCs, objects, ground items)."
    ),
    "/api/schema/{eventType}": "GET the data schema for a specific event type.",
    "/api/status": "GET the relay's connection state and cache size.",
}


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(
        default=None, description="Additional details"
    )


class IntrospectionServer:
    """FastAPI app exposing the relay's read-only views."""

    def __init__(
        self,
        session: SessionState,
        registry: SchemaRegistry,
        aggregator: SnapshotAggregator | None = None,
        metrics_endpoint: bool = True,
    ):
        """Initialize introspection server.

        Args:
            session: Session state read for cached events and status
            registry: Event schema registry
            aggregator: Snapshot source; snapshot endpoints answer 503 without one
            metrics_endpoint: Expose Prometheus metrics on ``/metrics``
        """
        self.session = session
        self.registry = registry
        self.aggregator = aggregator
        self.metrics_endpoint = metrics_endpoint
        self.logger = get_logger("simrelay.introspection")

        self.app = FastAPI(
            title="simrelay introspection",
            description="Read-only view of the simulation event relay",
            version="1.0.0",
        )

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up API routes."""

        @self.app.get("/", response_class=HTMLResponse)
        async def index() -> str:
            return self.render_index()

        @self.app.get("/api")
        async def api_index() -> dict[str, Any]:
            return {
                "description": API_DESCRIPTION,
                "endpoints": ENDPOINTS,
                "availableEventSchemas": self.registry.event_types(),
            }

        @self.app.get("/api/client/session")
        async def session_events() -> list[dict[str, Any]]:
            return [event.to_wire() for event in self.session.cache.snapshot_for_read()]

        @self.app.get(
            "/api/state/player",
            responses={500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        )
        def player_state() -> dict[str, Any]:
            aggregator = self._require_aggregator()
            try:
                state = aggregator.capture_player_state()
            except (SimulationTimeoutError, SimulationReadError) as e:
                raise self._snapshot_error(e, "/api/state/player") from e
            return state.to_json_dict() if state is not None else {}

        @self.app.get(
            "/api/all_game_data",
            responses={500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        )
        def all_game_data() -> dict[str, Any]:
            aggregator = self._require_aggregator()
            try:
                return aggregator.capture_all()
            except (SimulationTimeoutError, SimulationReadError) as e:
                raise self._snapshot_error(e, "/api/all_game_data") from e

        @self.app.get(
            "/api/schema/{event_type}",
            responses={404: {"model": ErrorResponse}},
        )
        async def event_schema(event_type: str) -> dict[str, str]:
            try:
                return dict(self.registry.get(event_type))
            except UnknownEventTypeError as e:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=ErrorResponse(
                        error="UNKNOWN_EVENT_TYPE",
                        message=str(e),
                        details={"event_type": e.event_type},
                    ).model_dump(),
                ) from e

        @self.app.get("/api/status")
        async def relay_status() -> dict[str, Any]:
            return self.session.status()

        if self.metrics_endpoint:

            @self.app.get("/metrics")
            async def metrics() -> Response:
                return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    def render_index(self) -> str:
        """Human-readable index with endpoint and schema links."""
        parts = [
            "<h1>Simulation Event Relay</h1>",
            "<p>Events are kept in memory for the current session only.</p>",
            "<h2>Endpoints:</h2>",
            "<ul>",
        ]
        for path, text in ENDPOINTS.items():
            if "{" in path:
                continue
            parts.append(f"<li><a href='{path}'>{path}</a> - {text}</li>")
        parts.append("</ul>")
        parts.append("<h2>Available Event Schemas:</h2>")
        parts.append("<ul>")
        for event_type in self.registry.event_types():
            parts.append(f"<li><a href='/api/schema/{event_type}'>{event_type}</a></li>")
        parts.append("</ul>")
        return "".join(parts)

    def _require_aggregator(self) -> SnapshotAggregator:
        if self.aggregator is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=ErrorResponse(
                    error="NO_SIMULATION",
                    message="No simulation is attached to the relay",
                ).model_dump(),
            )
        return self.aggregator

    def _snapshot_error(
        self, error: SimulationTimeoutError | SimulationReadError, path: str
    ) -> HTTPException:
        if isinstance(error, SimulationTimeoutError):
            self.logger.warning(
                "Snapshot timed out", path=path, timeout_ms=error.timeout_ms
            )
            return HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=ErrorResponse(
                    error="SIMULATION_TIMEOUT",
                    message=str(error),
                    details={
                        "operation": error.operation,
                        "timeout_ms": error.timeout_ms,
                    },
                ).model_dump(),
            )

        self.logger.error("Snapshot read failed", path=path, error=str(error))
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=ErrorResponse(
                error="INTERNAL_ERROR",
                message=f"Error processing request on simulation thread: {error.cause}",
                details={"operation": error.operation},
            ).model_dump(),
        )


def create_introspection_server(
    session: SessionState,
    registry: SchemaRegistry,
    aggregator: SnapshotAggregator | None = None,
    metrics_endpoint: bool = True,
) -> IntrospectionServer:
    """Create an introspection server instance.

    Args:
        session: Session state read for cached events and status
        registry: Event schema registry
        aggregator: Snapshot source, if a simulation is attached
        metrics_endpoint: Expose Prometheus metrics on ``/metrics``

    Returns:
        IntrospectionServer instance
    """
    return IntrospectionServer(
        session=session,
        registry=registry,
        aggregator=aggregator,
        metrics_endpoint=metrics_endpoint,
    )
