"""Delivery of events to the external collector.

One event per ``POST``, JSON body in the wire format of ``Event.to_wire``.
Asynchronous deliveries report their outcome through the ``on_outcome``
callback, which the relay wires to the health monitor.
"""

import asyncio
import time
from collections.abc import Callable
from enum import Enum

import httpx

from simrelay.core.session import SessionState
from simrelay.schemas.events import Event
from simrelay.utils.errors import (
    CollectorRejectedError,
    CollectorUnreachableError,
    EventEncodingError,
)
from simrelay.utils.telemetry import get_logger, record_delivery


class DeliveryOutcome(Enum):
    """Result of one delivery attempt."""

    DELIVERED = "delivered"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"
    SKIPPED = "skipped"


class DeliveryMode(Enum):
    ASYNC = "async"
    SYNC = "sync"


OutcomeCallback = Callable[[Event, DeliveryOutcome], None]


class DeliveryPipeline:
    """Turns events into collector requests.

    All coroutines run on the relay's event loop. ``dispatch`` is the
    fire-and-forget entry point; ``deliver`` awaits a single attempt.
    """

    def __init__(
        self,
        session: SessionState,
        client: httpx.AsyncClient,
        collector_url: str,
        on_outcome: OutcomeCallback | None = None,
    ):
        """Initialize delivery pipeline.

        Args:
            session: Shared session state; deliveries are skipped while disabled
            client: HTTP client used for posts and probes
            collector_url: Collector endpoint receiving POSTs and HEAD probes
            on_outcome: Callback receiving the outcome of asynchronous deliveries
        """
        self.session = session
        self.client = client
        self.collector_url = collector_url
        self.on_outcome = on_outcome
        self._tasks: set[asyncio.Task[DeliveryOutcome]] = set()
        self.logger = get_logger("simrelay.delivery")

    def dispatch(self, event: Event) -> "asyncio.Task[DeliveryOutcome]":
        """Start an asynchronous delivery without waiting for it.

        Must be called on the relay's event loop.
        """
        task = asyncio.get_running_loop().create_task(self.deliver(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def deliver(
        self, event: Event, mode: DeliveryMode = DeliveryMode.ASYNC
    ) -> DeliveryOutcome:
        """Deliver one event and classify the result.

        Failures never raise. Asynchronous outcomes are reported to
        ``on_outcome``; synchronous ones are only logged.
        """
        if self.session.is_disabled:
            record_delivery(mode.value, DeliveryOutcome.SKIPPED.value)
            return DeliveryOutcome.SKIPPED

        started = time.perf_counter()
        try:
            await self._post(event)
        except CollectorUnreachableError as e:
            outcome = DeliveryOutcome.UNREACHABLE
            if mode is DeliveryMode.SYNC:
                self.logger.error(
                    "Error sending synchronous event",
                    event_type=event.event_type.value,
                    error=str(e),
                )
            else:
                self.logger.debug(
                    "Collector unreachable",
                    event_type=event.event_type.value,
                    error=str(e),
                )
        except CollectorRejectedError as e:
            outcome = DeliveryOutcome.REJECTED
            self.logger.warning(
                "Unexpected status when posting event",
                event_type=event.event_type.value,
                status_code=e.status_code,
                mode=mode.value,
            )
        except EventEncodingError as e:
            outcome = DeliveryOutcome.REJECTED
            self.logger.warning(
                "Dropping event that cannot be encoded",
                event_type=e.event_type,
                reason=e.reason,
                mode=mode.value,
            )
        else:
            outcome = DeliveryOutcome.DELIVERED
            if mode is DeliveryMode.SYNC:
                self.logger.info(
                    "Sent synchronous event", event_type=event.event_type.value
                )

        record_delivery(mode.value, outcome.value, time.perf_counter() - started)

        if mode is DeliveryMode.ASYNC and self.on_outcome is not None:
            self.on_outcome(event, outcome)

        return outcome

    async def probe(self) -> bool:
        """Send a liveness ``HEAD`` to the collector.

        Returns:
            True if the collector answered with a success status
        """
        try:
            response = await self.client.head(self.collector_url)
        except httpx.HTTPError as e:
            self.logger.debug("Connection check failed", error=str(e))
            return False
        return response.is_success

    async def drain(self) -> None:
        """Wait for in-flight asynchronous deliveries to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def _post(self, event: Event) -> None:
        try:
            request = self.client.build_request("POST", self.collector_url, json=event.to_wire())
        except (TypeError, ValueError) as e:
            raise EventEncodingError(event.event_type.value, str(e)) from e

        try:
            response = await self.client.send(request)
        except httpx.HTTPError as e:
            raise CollectorUnreachableError(self.collector_url, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise CollectorRejectedError(
                self.collector_url, response.status_code, event.event_type.value
            )
