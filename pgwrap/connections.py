"""Single-connection manager with a debounced liveness check."""

from __future__ import annotations

import asyncio
import logging
import ssl
import time
from typing import Any, Callable, Coroutine, TypeVar

import asyncpg

from .models import ConnectionConfig, ConnectionState

LOG = logging.getLogger(__name__)

PING_INTERVAL = 15.0

T = TypeVar("T")


class DatabaseConnectionError(ConnectionError):
    """Raised when no live connection can be established."""


def build_ssl_context(config: ConnectionConfig) -> ssl.SSLContext:
    """Build the client TLS context from the configured key, certificate and CA."""

    if config.key and not config.certificate:
        raise ValueError("A client key was configured without a client certificate.")
    context = ssl.create_default_context(cafile=config.cacert or None)
    if config.certificate:
        context.load_cert_chain(config.certificate, keyfile=config.key or None)
    if not config.verify_server_certificate:
        # Self-signed servers; leaves the session open to MITM.
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class ConnectionManager:
    """Owns one asyncpg connection and re-establishes it when it goes stale.

    asyncpg is coroutine based, so the manager keeps a private event loop and
    drives every client call to completion on the calling thread. Instances
    are not thread safe; use one manager per thread.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        *,
        ping_interval: float = PING_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._ping_interval = ping_interval
        self._clock = clock
        self._conn: asyncpg.Connection | None = None
        self._last_ping: float | None = None
        self._loop = asyncio.new_event_loop()

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def state(self) -> ConnectionState:
        if self._conn is not None and self._last_ping is not None:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Block until a client coroutine completes on the manager's loop."""

        return self._loop.run_until_complete(coro)

    def acquire(self) -> asyncpg.Connection:
        """Return a live connection, reconnecting first if needed."""

        self.ensure_connected()
        assert self._conn is not None
        return self._conn

    def ensure_connected(self, force: bool = False) -> None:
        """Connect (or reconnect) unless the current handle passes a liveness check."""

        if not force and self.is_alive():
            return
        self._discard()
        config = self._config
        LOG.info("Connecting to %s@%s:%s/%s", config.user, config.host, config.port, config.database)
        try:
            self._conn = self.run(asyncpg.connect(**self._connect_kwargs()))
        except Exception as exc:
            LOG.warning("Connection to %s:%s failed: %s", config.host, config.port, exc)
            raise DatabaseConnectionError(
                f"Unable to connect to database '{config.database}' on {config.host}:{config.port}: {exc}"
            ) from exc
        if not self.is_alive(force=True):
            self._discard()
            raise DatabaseConnectionError(
                f"Unable to connect to database '{config.database}' on {config.host}:{config.port}"
            )

    def is_alive(self, force: bool = False) -> bool:
        """Ping the server, trusting a successful ping for ``ping_interval`` seconds."""

        conn = self._conn
        if conn is None or conn.is_closed():
            self._last_ping = None
            return False
        now = self._clock()
        if not force and self._last_ping is not None and now - self._last_ping < self._ping_interval:
            LOG.debug("Skipping ping; last success %.1fs ago", now - self._last_ping)
            return True
        try:
            self.run(conn.fetchval("SELECT 1", timeout=self._config.connect_timeout))
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
            LOG.warning("Ping failed: %s", exc)
            self._last_ping = None
            return False
        self._last_ping = now
        return True

    def invalidate(self) -> None:
        """Forget the last successful ping so the next acquire pings again."""

        self._last_ping = None

    def close(self) -> None:
        """Close the connection; the manager reconnects on next use."""

        conn, self._conn = self._conn, None
        self._last_ping = None
        if conn is None or conn.is_closed():
            return
        LOG.info("Closing connection to %s:%s", self._config.host, self._config.port)
        try:
            self.run(conn.close(timeout=self._config.connect_timeout))
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError):
            conn.terminate()

    def shutdown(self) -> None:
        """Close the connection and the private event loop."""

        if self._loop.is_closed():
            return
        self.close()
        self._loop.close()

    def __del__(self) -> None:  # pragma: no cover - best effort cleanup
        try:
            self.shutdown()
        except Exception:
            pass

    def _discard(self) -> None:
        conn, self._conn = self._conn, None
        self._last_ping = None
        if conn is not None and not conn.is_closed():
            conn.terminate()

    def _connect_kwargs(self) -> dict[str, object]:
        config = self._config
        kwargs: dict[str, object] = {
            "host": config.host or "localhost",
            "port": config.port,
            "timeout": config.connect_timeout,
        }
        if config.user:
            kwargs["user"] = config.user
        if config.password:
            kwargs["password"] = config.password
        if config.database:
            kwargs["database"] = config.database
        kwargs["ssl"] = build_ssl_context(config) if config.tls else "disable"
        return kwargs


__all__ = [
    "ConnectionManager",
    "DatabaseConnectionError",
    "PING_INTERVAL",
    "build_ssl_context",
]
