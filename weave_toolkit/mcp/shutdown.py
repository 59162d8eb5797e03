"""Graceful shutdown: stop admitting requests, then drain in-flight work."""

import asyncio
import threading
from enum import Enum

from weave_toolkit.mcp.errors import ServiceUnavailable
from weave_toolkit.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_GRACE_PERIOD = 30.0


class ShutdownState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class Admission:
    """One admitted request. Releasing it more than once is a no-op."""

    def __init__(self, coordinator: "ShutdownCoordinator"):
        self._coordinator = coordinator
        self._released = False

    def release(self) -> None:
        if not self._released:
            self._released = True
            self._coordinator._finish()

    def __enter__(self) -> "Admission":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class ShutdownCoordinator:
    """Tracks in-flight requests and coordinates Running -> Draining -> Stopped."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = ShutdownState.RUNNING
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._stopped = asyncio.Event()
        self._drained_cleanly = False

    @property
    def state(self) -> ShutdownState:
        with self._lock:
            return self._state

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def is_accepting(self) -> bool:
        return self.state is ShutdownState.RUNNING

    def admit(self) -> Admission:
        """Count a new request in, or refuse it once draining has begun."""
        with self._lock:
            if self._state is not ShutdownState.RUNNING:
                raise ServiceUnavailable()
            self._in_flight += 1
            self._idle.clear()
        return Admission(self)

    def _finish(self) -> None:
        with self._lock:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

    async def shutdown(self, grace_period: float = DEFAULT_GRACE_PERIOD) -> bool:
        """
        Stop accepting requests and wait for in-flight ones to finish.

        Args:
            grace_period: Maximum seconds to wait for the drain.

        Returns:
            True if every request finished, False if the wait was cut short.
        """
        with self._lock:
            first = self._state is ShutdownState.RUNNING
            if first:
                self._state = ShutdownState.DRAINING
            in_flight = self._in_flight

        if not first:
            await self._stopped.wait()
            return self._drained_cleanly

        logger.info("Waiting for active operations to complete...", in_flight=in_flight)
        try:
            await asyncio.wait_for(self._idle.wait(), grace_period)
            self._drained_cleanly = True
            logger.info("All active operations completed")
        except asyncio.TimeoutError:
            logger.warning(
                "Timeout waiting for active operations, forcing shutdown",
                in_flight=self.in_flight,
                grace_period=grace_period,
            )

        with self._lock:
            self._state = ShutdownState.STOPPED
        self._stopped.set()
        return self._drained_cleanly
