"""Shared dataclasses used across the connection and query modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Row = dict[str, Any]


class ConnectionState(str, Enum):
    """Lifecycle of the single connection owned by a manager."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Everything needed to open the connection; supplied once, never mutated."""

    host: str
    user: str
    password: str = field(default="", repr=False)
    database: str = ""
    port: int = 5432
    tls: bool = False
    key: str = ""
    certificate: str = ""
    cacert: str = ""
    verify_server_certificate: bool = False
    connect_timeout: float = 5.0


__all__ = ["ConnectionConfig", "ConnectionState", "Row"]
