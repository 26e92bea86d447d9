"""Connection health monitor: the relay's connection state machine.

States and transitions::

    CONNECTED --(async delivery unreachable | startup)--> PROBING
    PROBING   --(probe succeeded)----------------------> CONNECTED  (+ flush)
    PROBING   --(disable timer fired)------------------> DISABLED   (terminal)

Every method runs on the relay's event loop, which makes the monitor the single
owner of ``SessionState.connection``.
"""

import asyncio
from collections.abc import Callable

from simrelay.core.delivery import DeliveryOutcome, DeliveryPipeline
from simrelay.core.session import ConnectionState, SessionState
from simrelay.schemas.events import Event
from simrelay.utils.telemetry import get_logger, record_connection_state_change, record_flush

Notifier = Callable[[str], None]

DISABLED_MESSAGE = (
    "Event Tracker: Failed to connect to host. The tracker has been disabled "
    "for this session to improve performance. You can re-enable it in the "
    "plugin settings."
)

_ALLOWED_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.CONNECTED: frozenset({ConnectionState.PROBING}),
    ConnectionState.PROBING: frozenset({ConnectionState.CONNECTED, ConnectionState.DISABLED}),
    ConnectionState.DISABLED: frozenset(),
}


class ConnectionHealthMonitor:
    """Decides whether delivery is attempted, suspended or disabled."""

    def __init__(
        self,
        session: SessionState,
        pipeline: DeliveryPipeline,
        *,
        enabled: bool = True,
        retry_interval: float = 30.0,
        disable_delay: float = 300.0,
        notifier: Notifier | None = None,
        requeue_failed_flush: bool = False,
    ):
        """Initialize health monitor.

        Args:
            session: Shared session state owning the connection state
            pipeline: Pipeline used for probes and flush redelivery
            enabled: Whether connection handling is enabled at all
            retry_interval: Seconds between probes while probing
            disable_delay: Seconds of probing before the session is disabled
            notifier: Receives the one-time user-visible disable notice
            requeue_failed_flush: Re-append events whose redelivery failed
        """
        self.session = session
        self.pipeline = pipeline
        self.enabled = enabled
        self.retry_interval = retry_interval
        self.disable_delay = disable_delay
        self.notifier = notifier
        self.requeue_failed_flush = requeue_failed_flush

        self._probe_task: asyncio.Task[None] | None = None
        self._disable_handle: asyncio.TimerHandle | None = None
        self._flush_task: asyncio.Task[None] | None = None
        self._closed = False
        self.logger = get_logger("simrelay.health")

    @property
    def state(self) -> ConnectionState:
        return self.session.connection

    @property
    def probing(self) -> bool:
        """True while a probe cycle is outstanding."""
        return self._probe_task is not None and not self._probe_task.done()

    @property
    def disable_timer_pending(self) -> bool:
        return self._disable_handle is not None

    @property
    def flush_task(self) -> "asyncio.Task[None] | None":
        return self._flush_task

    def start(self) -> None:
        """Enter the initial state for the session."""
        if not self.enabled:
            self.logger.info("Connection handling disabled, assuming collector is reachable")
            return
        self.enter_probing(reason="startup")

    def record_outcome(self, event: Event, outcome: DeliveryOutcome) -> None:
        """Result channel for asynchronous deliveries."""
        if (
            outcome is DeliveryOutcome.UNREACHABLE
            and self.enabled
            and self.state is ConnectionState.CONNECTED
        ):
            self.enter_probing(reason="delivery_failed")

    def enter_probing(self, reason: str) -> None:
        """Suspend delivery and start probing the collector.

        No-op while a probe cycle is already outstanding, after disablement,
        or after shutdown.
        """
        if self._closed or self.state is ConnectionState.DISABLED or self.probing:
            return

        if self.state is ConnectionState.CONNECTED:
            self._transition(ConnectionState.PROBING, reason=reason)
        self.logger.info(
            "Connection to host lost. Starting connection checker...", reason=reason
        )

        loop = asyncio.get_running_loop()
        self._probe_task = loop.create_task(self._probe_cycle())

        if self._disable_handle is None:
            self._disable_handle = loop.call_later(self.disable_delay, self._on_disable_timer)

    def shutdown(self) -> None:
        """Cancel every outstanding timer; later requests are ignored."""
        self._closed = True
        self._cancel_probe()
        self._cancel_disable_timer()
        if self._flush_task is not None and not self._flush_task.done():
            self._flush_task.cancel()

    async def _probe_cycle(self) -> None:
        while True:
            if await self.pipeline.probe():
                self._on_probe_success()
                return
            await asyncio.sleep(self.retry_interval)

    def _on_probe_success(self) -> None:
        if self.state is not ConnectionState.PROBING:
            return
        self.logger.info("Successfully reconnected to host.")
        self._probe_task = None
        self._cancel_disable_timer()
        self._transition(ConnectionState.CONNECTED, reason="probe_succeeded")

        events = self.session.cache.snapshot_and_clear()
        record_flush(len(events), len(self.session.cache))
        self._flush_task = asyncio.get_running_loop().create_task(self._flush(events))

    async def _flush(self, events: list[Event]) -> None:
        self.logger.info("Flushing events from cache", count=len(events))
        failed = 0
        for event in events:
            try:
                outcome = await self.pipeline.deliver(event)
            except Exception as e:
                # Every captured event gets exactly one attempt
                self.logger.error(
                    "Error redelivering cached event",
                    event_type=event.event_type.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                failed += 1
                continue
            if outcome is DeliveryOutcome.DELIVERED:
                continue
            failed += 1
            if self.requeue_failed_flush and outcome is not DeliveryOutcome.SKIPPED:
                self.session.cache.append(event)
        if failed:
            self.logger.warning(
                "Events failed redelivery during flush",
                failed=failed,
                requeued=self.requeue_failed_flush,
            )

    def _on_disable_timer(self) -> None:
        self._disable_handle = None
        if self.state is not ConnectionState.PROBING:
            return

        self.logger.warning("Disabling event tracker for this session due to connection failure.")
        self._cancel_probe()
        self._transition(ConnectionState.DISABLED, reason="disable_timer")
        self._notify_disabled()

    def _notify_disabled(self) -> None:
        if self.session.disabled_notified:
            return
        self.session.disabled_notified = True
        if self.notifier is None:
            self.logger.warning(DISABLED_MESSAGE)
            return
        try:
            self.notifier(DISABLED_MESSAGE)
        except Exception as e:
            self.logger.error("Failed to deliver disable notification", error=str(e))

    def _transition(self, target: ConnectionState, reason: str) -> bool:
        current = self.session.connection
        if target not in _ALLOWED_TRANSITIONS[current]:
            self.logger.debug(
                "Ignoring connection transition",
                from_state=current.value,
                to_state=target.value,
                reason=reason,
            )
            return False

        self.session.connection = target
        record_connection_state_change(current.value, target.value)
        self.logger.info(
            "Connection state changed",
            from_state=current.value,
            to_state=target.value,
            reason=reason,
        )
        return True

    def _cancel_probe(self) -> None:
        if self._probe_task is not None:
            self._probe_task.cancel()
            self._probe_task = None

    def _cancel_disable_timer(self) -> None:
        if self._disable_handle is not None:
            self._disable_handle.cancel()
            self._disable_handle = None
