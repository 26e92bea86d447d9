"""Relay facade: wires the cache, delivery, health monitor and introspection.

The relay owns one background thread running an asyncio event loop. The
health monitor, its timers and every asynchronous delivery live on that loop;
emitting threads only append to the cache and hand deliveries over with
``run_coroutine_threadsafe``.
"""

import asyncio
import threading
from collections.abc import Callable, Coroutine
from concurrent.futures import Future
from typing import Any, TypeVar

import httpx

from simrelay.adapters.web.runner import IntrospectionServerRunner
from simrelay.adapters.web.server import create_introspection_server
from simrelay.config.config import RelayConfig
from simrelay.core.delivery import DeliveryMode, DeliveryOutcome, DeliveryPipeline
from simrelay.core.health import ConnectionHealthMonitor, Notifier
from simrelay.core.session import ConnectionState, SessionState
from simrelay.core.snapshot import SnapshotAggregator
from simrelay.schemas.events import UNKNOWN_SUBJECT, Event, EventType
from simrelay.schemas.registry import SchemaRegistry, default_registry
from simrelay.simulation.model import SimulationClient
from simrelay.simulation.thread import SimulationThread
from simrelay.utils.errors import IntrospectionServerError
from simrelay.utils.telemetry import (
    get_logger,
    record_event_dropped,
    record_event_emitted,
    update_cache_size,
)

T = TypeVar("T")


class RelayLoop:
    """Background asyncio event loop on a daemon thread."""

    def __init__(self, name: str = "simrelay-loop") -> None:
        self.name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("Relay loop is not running")
        return self._loop

    @property
    def running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        self._ready.wait()

    def submit(self, coro: Coroutine[Any, Any, T]) -> "Future[T]":
        """Schedule a coroutine on the loop from any thread."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, fn: Callable[[], T], timeout: float | None = None) -> T:
        """Run a plain callable on the loop thread and wait for its result."""

        async def invoke() -> T:
            return fn()

        return self.submit(invoke()).result(timeout=timeout)

    def stop(self, timeout: float = 5.0) -> None:
        if self._loop is None or self._thread is None:
            return
        if self._loop.is_running():
            try:
                self.submit(self._cancel_remaining()).result(timeout=timeout)
            except Exception:  # noqa: BLE001
                pass  # Ignore errors during shutdown
            self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout)
        if not self._loop.is_running():
            self._loop.close()
        self._thread = None
        self._loop = None
        self._ready.clear()

    def _run(self) -> None:
        assert self._loop is not None
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._ready.set)
        self._loop.run_forever()

    async def _cancel_remaining(self) -> None:
        current = asyncio.current_task()
        tasks = [t for t in asyncio.all_tasks() if t is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class EventRelay:
    """In-process telemetry relay for one simulation session."""

    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        simulation: SimulationClient | None = None,
        simulation_thread: SimulationThread | None = None,
        notifier: Notifier | None = None,
        registry: SchemaRegistry | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics_endpoint: bool = True,
    ):
        """Initialize the relay.

        Args:
            config: Relay configuration (defaults when omitted)
            simulation: Read access to live simulation state
            simulation_thread: Hand-off to the simulation's safe-read thread
            notifier: Receives user-visible notices (e.g. session disabled)
            registry: Event schema registry (built-in schemas when omitted)
            transport: HTTP transport override for the collector client
            metrics_endpoint: Expose ``/metrics`` on the introspection server
        """
        self.config = config or RelayConfig()
        self.simulation = simulation
        self.simulation_thread = simulation_thread or SimulationThread()
        self.notifier = notifier
        self.registry = registry or default_registry()
        self.session = SessionState()
        self.logger = get_logger("simrelay.relay")

        self._transport = transport
        self._metrics_endpoint = metrics_endpoint
        self._loop = RelayLoop()
        self._lock = threading.Lock()
        self._client: httpx.AsyncClient | None = None
        self.pipeline: DeliveryPipeline | None = None
        self.monitor: ConnectionHealthMonitor | None = None
        self.server: IntrospectionServerRunner | None = None

        self.aggregator: SnapshotAggregator | None = None
        if simulation is not None:
            self.aggregator = SnapshotAggregator(
                simulation,
                self.simulation_thread,
                render_radius=self.config.render.tile_render_radius,
                timeout=self.config.introspection.snapshot_timeout_seconds,
            )

    @property
    def state(self) -> ConnectionState:
        return self.session.connection

    @property
    def cache_size(self) -> int:
        return len(self.session.cache)

    def start(self) -> None:
        """Start the session: loop, introspection surface, monitor, session event."""
        try:
            self._start()
        except Exception as e:
            self.logger.error(
                "Failed to start event relay", error=str(e), error_type=type(e).__name__
            )

    def stop(self) -> None:
        """End the session, sending a final synchronous session-end event."""
        try:
            self._stop()
        except Exception as e:
            self.logger.error(
                "Failed to stop event relay", error=str(e), error_type=type(e).__name__
            )

    def _start(self) -> None:
        with self._lock:
            if self.session.accepting:
                return
            if self.session.started_at is not None:
                # Restart: a disabled session only recovers through re-initialization
                self.session = SessionState()
            self.logger.info("Event relay started")

            self._loop.start()
            connection = self.config.connection
            self._client = httpx.AsyncClient(
                transport=self._transport,
                timeout=connection.request_timeout_seconds,
            )
            self.pipeline = DeliveryPipeline(
                self.session,
                self._client,
                connection.collector_url,
                on_outcome=self._on_delivery_outcome,
            )
            self.monitor = ConnectionHealthMonitor(
                self.session,
                self.pipeline,
                enabled=connection.enable_connection_handling,
                retry_interval=connection.retry_delay_seconds,
                disable_delay=connection.disable_delay_minutes * 60,
                notifier=self.notifier,
                requeue_failed_flush=connection.requeue_failed_flush,
            )

            if self.config.introspection.enabled:
                self._start_introspection()

            self.session.mark_started()
            self._loop.call(self.monitor.start)

        self._emit_event(Event.create(EventType.SESSION_STARTED))

    def _stop(self) -> None:
        with self._lock:
            if not self.session.accepting:
                return
            self.logger.info("Event relay stopped")

            if self.session.is_connected:
                closing = Event.create(EventType.SESSION_CLOSED)
                self.session.cache.append(closing)
                self.deliver_sync(closing)

            self.session.accepting = False
            if self.monitor is not None:
                self._loop.call(self.monitor.shutdown)
            if self.server is not None:
                self.server.stop()
                self.server = None
            if self._client is not None:
                try:
                    self._loop.submit(self._client.aclose()).result(timeout=5.0)
                except Exception as e:  # noqa: BLE001
                    self.logger.debug("Failed to close collector client", error=str(e))
            self._loop.stop()
            self.session.cache.clear()
            update_cache_size(0)

    def emit(
        self, event_type: EventType | str, payload: dict[str, Any] | None = None
    ) -> Event | None:
        """Record a simulation event; safe from any thread, never raises.

        The subject name is read from the simulation only when called on the
        simulation thread; other threads record ``UNKNOWN_SUBJECT``.

        Returns:
            The recorded event, or None if it was dropped
        """
        try:
            kind = EventType(event_type)
        except ValueError:
            self.logger.warning("Dropping event of unknown type", event_type=str(event_type))
            record_event_dropped("unknown_type")
            return None

        try:
            return self._emit_event(
                Event.create(kind, payload, subject_name=self._subject_name())
            )
        except Exception as e:
            self.logger.error(
                "Failed to record event", event_type=kind.value, error=str(e)
            )
            record_event_dropped("error")
            return None

    def deliver_sync(self, event: Event, timeout: float | None = None) -> DeliveryOutcome:
        """Deliver one event, blocking the caller until it completes or fails."""
        if self.pipeline is None or not self._loop.running:
            return DeliveryOutcome.SKIPPED
        wait = timeout or self.config.connection.request_timeout_seconds + 1.0
        try:
            return self._loop.submit(
                self.pipeline.deliver(event, DeliveryMode.SYNC)
            ).result(timeout=wait)
        except Exception as e:  # noqa: BLE001
            self.logger.error(
                "Error sending synchronous event",
                event_type=event.event_type.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryOutcome.UNREACHABLE

    def run_on_loop(self, fn: Callable[[], T], timeout: float | None = 5.0) -> T:
        """Run a callable on the relay loop thread (e.g. to inspect the monitor)."""
        return self._loop.call(fn, timeout=timeout)

    def _emit_event(self, event: Event) -> Event | None:
        if not self.session.accepting:
            record_event_dropped("stopped")
            return None
        if self.session.is_disabled:
            record_event_dropped("disabled")
            return None

        size = self.session.cache.append(event)
        record_event_emitted(event.event_type.value, size)

        if self.session.is_connected and self.pipeline is not None:
            try:
                self._loop.submit(self._dispatch(event))
            except RuntimeError as e:
                self.logger.debug("Relay loop unavailable, event kept in cache", error=str(e))
        return event

    async def _dispatch(self, event: Event) -> None:
        assert self.pipeline is not None
        self.pipeline.dispatch(event)

    def _on_delivery_outcome(self, event: Event, outcome: DeliveryOutcome) -> None:
        if self.monitor is not None:
            self.monitor.record_outcome(event, outcome)

    def _subject_name(self) -> str:
        # Simulation state is only readable on the simulation thread
        if self.simulation is None or not self.simulation_thread.is_current():
            return UNKNOWN_SUBJECT
        try:
            player = self.simulation.local_player
        except Exception:  # noqa: BLE001
            return UNKNOWN_SUBJECT
        if player is None or not player.name:
            return UNKNOWN_SUBJECT
        return player.name

    def _start_introspection(self) -> None:
        introspection = self.config.introspection
        server = create_introspection_server(
            self.session,
            self.registry,
            self.aggregator,
            metrics_endpoint=self._metrics_endpoint,
        )
        runner = IntrospectionServerRunner(
            server.app, host=introspection.host, port=introspection.port
        )
        try:
            runner.start()
        except IntrospectionServerError as e:
            self.logger.error("Failed to start introspection server", error=str(e))
            return
        self.server = runner
