"""Query helpers layered over the connection manager."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

import asyncpg

from .config import AppConfig, load_config
from .connections import ConnectionManager, DatabaseConnectionError
from .models import ConnectionConfig, Row
from .shaping import ColumnsArg, Records, ResultShaper, to_row

LOG = logging.getLogger(__name__)

SUCCESSFUL_COMPLETION = "00000"


class QueryExecutionError(RuntimeError):
    """Raised when the server rejects a query."""

    def __init__(self, message: str, *, sqlstate: str | None = None, query: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate
        self.query = query

    @classmethod
    def from_postgres(cls, exc: asyncpg.PostgresError, query: str) -> QueryExecutionError:
        return cls(str(exc), sqlstate=getattr(exc, "sqlstate", None), query=query)


class Database:
    """Convenience wrapper issuing raw SQL over one self-healing connection.

    Connection failures raise :class:`~pgwrap.connections.DatabaseConnectionError`.
    Query failures do not raise: they show up as ``False``, ``None`` or a
    skipped result, and are kept on :attr:`last_error`.
    """

    def __init__(self, config: ConnectionConfig, *, lazy: bool = False) -> None:
        self._manager = ConnectionManager(config)
        self._last_error: QueryExecutionError | None = None
        self._affected_rows = 0
        if not lazy:
            try:
                self._manager.ensure_connected(force=True)
            except DatabaseConnectionError:
                self._manager.shutdown()
                raise

    @classmethod
    def from_profile(
        cls,
        name: str | None = None,
        *,
        config: AppConfig | None = None,
        lazy: bool = False,
    ) -> Database:
        """Build a wrapper from a configured connection profile."""

        app_config = config or load_config()
        profile = app_config.profile(name)
        return cls(profile.to_connection_config(), lazy=lazy)

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @property
    def last_error(self) -> QueryExecutionError | None:
        """Error from the most recent query, if it failed."""

        return self._last_error

    @property
    def last_error_code(self) -> str:
        """SQLSTATE of the most recent query; ``"00000"`` on success."""

        if self._last_error is None:
            return SUCCESSFUL_COMPLETION
        return self._last_error.sqlstate or "XX000"

    def ping(self, force: bool = False) -> bool:
        return self._manager.is_alive(force=force)

    def escape_string(self, text: str) -> str:
        """Escape ``text`` for use inside a single-quoted SQL literal."""

        conn = self._manager.acquire()
        if "\x00" in text:
            raise ValueError("PostgreSQL strings cannot contain NUL characters.")
        escaped = text.replace("'", "''")
        settings = conn.get_settings()
        if getattr(settings, "standard_conforming_strings", "on") != "on":
            escaped = escaped.replace("\\", "\\\\")
        return escaped

    def for_each(self, query: str, callback: Callable[[Row], Any]) -> tuple[int, int]:
        """Call ``callback`` per row; return ``(processed, success)`` counts."""

        processed = success = 0
        try:
            records = self._run("fetch", query)
        except QueryExecutionError:
            return processed, success
        for record in records:
            processed += 1
            if callback(to_row(record)):
                success += 1
        self._affected_rows = processed
        return processed, success

    def exists(self, query: str) -> bool:
        try:
            return self._run("fetchrow", query) is not None
        except QueryExecutionError:
            return False

    def execute(self, query: str) -> bool:
        """Run a statement; ``True`` when the server reported no error."""

        try:
            status = self._run("execute", query)
        except QueryExecutionError:
            return False
        self._affected_rows = _affected_from_status(status)
        return True

    def multi_execute(self, query: str) -> bool:
        """Run several ``;``-separated statements in one round trip.

        Statements run in order until one fails; earlier statements stay
        applied unless the script manages its own transaction.
        """

        return self.execute(query)

    def affected_rows(self) -> int:
        return self._affected_rows

    def fetch(self, query: str) -> Row | None:
        """First row of the result, or ``None`` when there is none or the query failed."""

        try:
            record = self._run("fetchrow", query)
        except QueryExecutionError:
            return None
        if record is None:
            return None
        return to_row(record)

    def fetch_all(
        self,
        queries: str | Sequence[str],
        key_field: ColumnsArg = None,
        key_value: ColumnsArg = None,
    ) -> Records:
        """Collect every row of one or more queries.

        Without ``key_field`` the result is a list; with it, a dict keyed by
        the concatenated key column values where later rows win. ``key_value``
        picks what is stored: the whole row when omitted, a scalar for one
        column name, or a partial row for a list of names. Failed queries are
        skipped.
        """

        if isinstance(queries, str):
            queries = [queries]
        shaper = ResultShaper(key_field, key_value)
        records = shaper.new_collection()
        for query in queries:
            try:
                rows = self._run("fetch", query)
            except QueryExecutionError:
                continue
            self._affected_rows = len(rows)
            shaper.shape(rows, into=records)
        return records

    def close(self) -> None:
        self._manager.shutdown()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _run(self, method: str, query: str) -> Any:
        conn = self._manager.acquire()
        LOG.debug("Running %s: %s", method, query)
        try:
            result = self._manager.run(getattr(conn, method)(query))
        except asyncpg.PostgresError as exc:
            self._last_error = QueryExecutionError.from_postgres(exc, query)
            LOG.warning("Query failed [%s]: %s", self._last_error.sqlstate, exc)
            raise self._last_error from exc
        except Exception:
            self._manager.invalidate()
            raise
        self._last_error = None
        return result


def _affected_from_status(status: object) -> int:
    """Row count from a command tag such as ``INSERT 0 3`` or ``UPDATE 2``."""

    if not isinstance(status, str):
        return 0
    parts = status.split()
    if len(parts) < 2 or not parts[-1].isdigit():
        return 0
    return int(parts[-1])


__all__ = [
    "Database",
    "QueryExecutionError",
    "SUCCESSFUL_COMPLETION",
]
