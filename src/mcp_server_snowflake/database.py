import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from .configs import (
    DEFAULT_CONNECTION_MAX_LIFETIME,
    DEFAULT_MAX_IDLE_CONNECTIONS,
    DEFAULT_MAX_OPEN_CONNECTIONS,
    PING_TIMEOUT,
    SnowflakeConfig,
)

logger = logging.getLogger("mcp_server_snowflake")


class PoolTimeoutError(TimeoutError):
    """No pooled connection became available within the timeout."""


class QueryCancelledError(Exception):
    """The caller cancelled the statement before it completed."""


class CancelToken:
    """
    Cancellation signal passed from the caller to a running statement.

    Callbacks registered with ``on_cancel`` run once, on the thread calling
    ``cancel()``, or immediately if the token is already cancelled.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return lambda: self._discard_callback(callback)
        callback()
        return lambda: None

    def _discard_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Error while cancelling query: {e}")


@dataclass
class _PooledConnection:
    conn: Any
    created_at: float = field(default_factory=time.monotonic)


class SnowflakeConnectionPool:
    """
    Thread-safe pool of Snowflake connections.

    At most ``max_open`` connections exist at once, at most ``max_idle`` are
    kept between queries, and none is reused once it is older than
    ``max_lifetime`` seconds. ``connect`` is a zero-argument factory returning
    a DB-API connection (``snowflake.connector.connect`` for real use).
    """

    def __init__(
        self,
        connect: Callable[[], Any],
        max_open: int = DEFAULT_MAX_OPEN_CONNECTIONS,
        max_idle: int = DEFAULT_MAX_IDLE_CONNECTIONS,
        max_lifetime: float = DEFAULT_CONNECTION_MAX_LIFETIME,
    ):
        if max_open < 1:
            raise ValueError("max_open must be at least 1")
        self._connect = connect
        self._max_open = max_open
        self._max_idle = max(0, min(max_idle, max_open))
        self._max_lifetime = max_lifetime
        self._slots = threading.BoundedSemaphore(max_open)
        self._idle: deque[_PooledConnection] = deque()
        self._lock = threading.Lock()
        self._open_count = 0
        self._closed = False

    @classmethod
    def from_config(cls, config: SnowflakeConfig, **pool_options: Any) -> "SnowflakeConnectionPool":
        """Build a pool that opens real Snowflake sessions."""
        import snowflake.connector

        connect_kwargs = config.connect_kwargs()

        def connect() -> Any:
            return snowflake.connector.connect(**connect_kwargs)

        return cls(connect, **pool_options)

    @property
    def open_connections(self) -> int:
        with self._lock:
            return self._open_count

    @property
    def idle_connections(self) -> int:
        with self._lock:
            return len(self._idle)

    def _is_expired(self, pooled: _PooledConnection) -> bool:
        if self._max_lifetime <= 0:
            return False
        return time.monotonic() - pooled.created_at >= self._max_lifetime

    def _discard(self, pooled: _PooledConnection) -> None:
        with self._lock:
            self._open_count -= 1
        try:
            pooled.conn.close()
            logger.debug("Closed pooled Snowflake connection")
        except Exception as e:
            logger.warning(f"Error closing Snowflake connection: {e}")

    def _checkout(self, timeout: float | None) -> _PooledConnection:
        if self._closed:
            raise RuntimeError("Connection pool is closed")
        acquired = self._slots.acquire(timeout=timeout) if timeout else self._slots.acquire()
        if not acquired:
            raise PoolTimeoutError(f"Timed out after {timeout}s waiting for a database connection")

        try:
            while True:
                with self._lock:
                    pooled = self._idle.pop() if self._idle else None
                if pooled is None:
                    break
                if self._is_expired(pooled) or pooled.conn.is_closed():
                    self._discard(pooled)
                    continue
                return pooled

            logger.debug("Opening new Snowflake connection")
            conn = self._connect()
            with self._lock:
                self._open_count += 1
            return _PooledConnection(conn)
        except BaseException:
            self._slots.release()
            raise

    def _checkin(self, pooled: _PooledConnection) -> None:
        try:
            keep = not self._closed and not self._is_expired(pooled) and not pooled.conn.is_closed()
            if keep:
                with self._lock:
                    if len(self._idle) < self._max_idle:
                        self._idle.append(pooled)
                        return
            self._discard(pooled)
        finally:
            self._slots.release()

    @contextmanager
    def connection(self, timeout: float | None = None) -> Iterator[Any]:
        """Check a connection out of the pool, returning it on exit."""
        pooled = self._checkout(timeout)
        try:
            yield pooled.conn
        finally:
            self._checkin(pooled)

    @contextmanager
    def query(
        self,
        sql: str,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
    ) -> Iterator[Any]:
        """
        Execute ``sql`` and yield the open cursor.

        ``timeout`` bounds the wait for a connection and the statement itself;
        Snowflake cancels a statement that runs past it. Cancelling ``cancel``
        while the statement runs aborts it on the warehouse and raises
        ``QueryCancelledError``.
        """
        with self.connection(timeout=timeout) as conn:
            # may have been cancelled while waiting for a free connection
            if cancel is not None and cancel.cancelled:
                raise QueryCancelledError("Query cancelled before execution")
            cursor = conn.cursor()
            unregister = cancel.on_cancel(lambda: self._abort(conn)) if cancel else None
            try:
                try:
                    if timeout:
                        cursor.execute(sql, timeout=int(timeout))
                    else:
                        cursor.execute(sql)
                except Exception as e:
                    if cancel is not None and cancel.cancelled:
                        raise QueryCancelledError(f"Query cancelled by the client: {e}") from e
                    raise
                finally:
                    if unregister is not None:
                        unregister()
                yield cursor
            finally:
                cursor.close()

    @staticmethod
    def _abort(conn: Any) -> None:
        """Cancel the statement running on ``conn``'s session.

        A pooled connection runs one statement at a time, so cancelling every
        query of its session aborts exactly the caller's statement.
        """
        logger.info(f"Aborting running query on session {conn.session_id}")
        abort_cursor = conn.cursor()
        try:
            abort_cursor.execute("SELECT SYSTEM$CANCEL_ALL_QUERIES(%s)", (conn.session_id,))
        finally:
            abort_cursor.close()

    def ping(self, timeout: float = PING_TIMEOUT) -> None:
        """Verify the warehouse is reachable. Raises on failure."""
        with self.query("SELECT 1", timeout=timeout) as cursor:
            cursor.fetchone()

    def close(self) -> None:
        """Close idle connections; checked-out ones close when returned."""
        self._closed = True
        with self._lock:
            idle = list(self._idle)
            self._idle.clear()
        for pooled in idle:
            self._discard(pooled)
        logger.info("Snowflake connection pool closed")

    def __enter__(self) -> "SnowflakeConnectionPool":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
