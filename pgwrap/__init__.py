"""Object-oriented convenience wrapper around an asyncpg connection."""

from __future__ import annotations

from .config import AppConfig, ConnectionProfileConfig, load_config
from .connections import ConnectionManager, DatabaseConnectionError, build_ssl_context
from .models import ConnectionConfig, ConnectionState, Row
from .query import Database, QueryExecutionError
from .shaping import Multiple, ResultShaper, Single

__all__ = [
    "AppConfig",
    "ConnectionConfig",
    "ConnectionManager",
    "ConnectionProfileConfig",
    "ConnectionState",
    "Database",
    "DatabaseConnectionError",
    "Multiple",
    "QueryExecutionError",
    "ResultShaper",
    "Row",
    "Single",
    "build_ssl_context",
    "load_config",
]
