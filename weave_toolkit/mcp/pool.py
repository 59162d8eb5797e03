"""Bounded pool of logical connection handles."""

import secrets
import string
import threading
import time
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from weave_toolkit.mcp.errors import PoolExhausted
from weave_toolkit.mcp.models import ClientInfo, ConnectionHandle, PoolStats
from weave_toolkit.utils.logging import get_logger

logger = get_logger(__name__)

_ID_ALPHABET = string.ascii_letters + string.digits


def generate_connection_id() -> str:
    """IDs look like conn_<ns timestamp>_<8 random chars>."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))
    return f"conn_{time.time_ns()}_{suffix}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionPool:
    """Hands out reusable connection handles, at most ``max_size`` at a time.

    Handles are session slots, not sockets: the pool caps how many requests
    are serviced at once and reports exhaustion as its own error.
    """

    def __init__(self, max_size: int = 100):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._idle: deque[ConnectionHandle] = deque()
        self._active = 0
        self._lock = threading.Lock()

    def acquire(self, client: ClientInfo | None = None) -> ConnectionHandle:
        """Take an idle handle or create one; raise PoolExhausted when full."""
        client = client or ClientInfo()
        with self._lock:
            if self._idle:
                conn = self._idle.popleft()
                conn.client = client
                conn.last_active = _now()
                self._active += 1
                return conn

            if self._active >= self.max_size:
                raise PoolExhausted(self.max_size)

            now = _now()
            conn = ConnectionHandle(
                id=generate_connection_id(),
                client=client,
                created_at=now,
                last_active=now,
            )
            self._active += 1

        logger.debug("Created new connection", connection_id=conn.id, client=client.name)
        return conn

    def release(self, conn: ConnectionHandle) -> None:
        """Return a handle to the idle set, or discard it if that is full."""
        conn.last_active = _now()
        with self._lock:
            self._active -= 1
            pooled = len(self._idle) < self.max_size
            if pooled:
                self._idle.append(conn)

        if pooled:
            logger.debug("Connection released to pool", connection_id=conn.id)
        else:
            logger.debug("Connection closed (pool full)", connection_id=conn.id)

    @contextmanager
    def connection(self, client: ClientInfo | None = None) -> Iterator[ConnectionHandle]:
        """Acquire a handle for the duration of a with-block."""
        conn = self.acquire(client)
        try:
            yield conn
        finally:
            self.release(conn)

    def stats(self) -> PoolStats:
        """Snapshot of pool usage."""
        with self._lock:
            return PoolStats(
                max_size=self.max_size,
                active=self._active,
                idle=len(self._idle),
                available=self.max_size - self._active,
            )

    @property
    def active(self) -> int:
        with self._lock:
            return self._active
