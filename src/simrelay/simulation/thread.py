"""Hand-off of work to the simulation's single safe-read thread.

Live simulation state may only be read from the thread that mutates it. Other
threads package a read as a callable, submit it here, and block with a bounded
wait for the result. The host drains the queue from its own thread once per
tick with ``run_pending``.
"""

import queue
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TypeVar

from simrelay.utils.errors import SimulationReadError, SimulationTimeoutError
from simrelay.utils.telemetry import get_logger

T = TypeVar("T")


class SimulationThread:
    """Single-reader executor for simulation state."""

    def __init__(self, name: str = "simulation") -> None:
        self.name = name
        self._queue: queue.SimpleQueue[tuple[Callable[[], object], Future]] = (
            queue.SimpleQueue()
        )
        self._owner: int | None = None
        self._logger = get_logger("simrelay.simulation", thread=name)

    def bind(self) -> None:
        """Declare the calling thread as the simulation thread."""
        self._owner = threading.get_ident()

    def is_current(self) -> bool:
        return self._owner is not None and self._owner == threading.get_ident()

    def invoke(self, fn: Callable[[], T]) -> "Future[T]":
        """Schedule ``fn`` on the simulation thread.

        Runs inline when already on the simulation thread, so nested reads
        cannot deadlock.
        """
        future: Future[T] = Future()
        if self.is_current():
            self._run(fn, future)
        else:
            self._queue.put((fn, future))
        return future

    def call(self, fn: Callable[[], T], timeout: float, operation: str = "read") -> T:
        """Run ``fn`` on the simulation thread and wait for its result.

        Args:
            fn: Unit of work reading simulation state
            timeout: Bounded wait in seconds
            operation: Name used in errors and logs

        Raises:
            SimulationTimeoutError: If the work did not complete in time. Work
                still queued is cancelled; work already running finishes on
                the simulation thread and its result is discarded
            SimulationReadError: If the work itself raised
        """
        future = self.invoke(fn)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            cancelled = future.cancel()
            self._logger.warning(
                "Simulation thread did not respond",
                operation=operation,
                timeout_ms=timeout * 1000,
            )
            if not cancelled:
                self._logger.info(
                    "Simulation read already running, result will be discarded",
                    operation=operation,
                )
            raise SimulationTimeoutError(operation, timeout * 1000) from e
        except Exception as e:
            raise SimulationReadError(operation, e) from e

    def run_pending(self, max_items: int | None = None) -> int:
        """Run queued work; call from the simulation thread once per tick.

        Returns:
            Number of work items executed
        """
        if self._owner is None:
            self.bind()

        executed = 0
        while max_items is None or executed < max_items:
            try:
                fn, future = self._queue.get_nowait()
            except queue.Empty:
                break
            if self._run(fn, future):
                executed += 1
        return executed

    def run_forever(self, stop: threading.Event, tick_interval: float = 0.6) -> None:
        """Drive the queue from a dedicated thread until ``stop`` is set.

        For hosts without a tick loop of their own.
        """
        self.bind()
        while not stop.is_set():
            self.run_pending()
            time.sleep(tick_interval)
        self.run_pending()

    def pending(self) -> int:
        return self._queue.qsize()

    def _run(self, fn: Callable[[], object], future: Future) -> bool:
        if not future.set_running_or_notify_cancel():
            return False
        try:
            result = fn()
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return True
