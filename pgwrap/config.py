"""Connection profile loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

from .models import ConnectionConfig

CONFIG_FILE = Path.home() / ".config" / "pgwrap" / "config.toml"

_STRING_KEYS = ("name", "host", "user", "password", "database", "key", "certificate", "cacert")
_BOOL_KEYS = ("tls", "verify_server_certificate")


class ConnectionProfileConfig(BaseModel):
    """Connection profile stored in config.toml."""

    name: str
    host: str = "localhost"
    port: int = 5432
    user: str = ""
    password: str = Field(default="", repr=False)
    database: str = ""
    tls: bool = False
    key: str = ""
    certificate: str = ""
    cacert: str = ""
    verify_server_certificate: bool = False
    connect_timeout: float = 5.0

    def to_connection_config(self) -> ConnectionConfig:
        """Freeze the profile into the value the connection manager consumes."""

        return ConnectionConfig(
            host=self.host,
            user=self.user,
            password=self.password,
            database=self.database,
            port=self.port,
            tls=self.tls,
            key=self.key,
            certificate=self.certificate,
            cacert=self.cacert,
            verify_server_certificate=self.verify_server_certificate,
            connect_timeout=self.connect_timeout,
        )


class AppConfig(BaseModel):
    """Shape of the configuration file."""

    profiles: list[ConnectionProfileConfig] = Field(default_factory=lambda: list(_default_profiles()))
    active_profile: str | None = None

    def profile(self, name: str | None = None) -> ConnectionProfileConfig:
        """Return the named profile, else the active one, else the first configured."""

        wanted = name or self.active_profile
        if wanted is None:
            if not self.profiles:
                raise ValueError("No connection profiles configured.")
            return self.profiles[0]
        for profile in self.profiles:
            if profile.name == wanted:
                return profile
        raise ValueError(f"Profile '{wanted}' not found.")

    def with_active_profile(self, name: str) -> AppConfig:
        """Return a copy with the active profile updated."""

        return self.model_copy(update={"active_profile": name})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()

    profiles_data = data.get("profiles")
    profiles: list[ConnectionProfileConfig] | None = None
    if isinstance(profiles_data, list):
        profiles = [
            ConnectionProfileConfig(**profile)
            for profile in profiles_data  # type: ignore[list-item]
            if isinstance(profile, dict)
        ]

    return AppConfig(
        profiles=profiles if profiles is not None else list(_default_profiles()),
        active_profile=data.get("active_profile"),
    )


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = []
    if config.active_profile:
        lines.append(f"active_profile = {_toml_string(config.active_profile)}")
    if config.profiles:
        lines.append("")
        for profile in config.profiles:
            lines.append("[[profiles]]")
            lines.append(f"name = {_toml_string(profile.name)}")
            lines.append(f"host = {_toml_string(profile.host)}")
            lines.append(f"port = {profile.port}")
            for key in ("user", "password", "database", "key", "certificate", "cacert"):
                value = getattr(profile, key)
                if value:
                    lines.append(f"{key} = {_toml_string(value)}")
            if profile.tls:
                lines.append("tls = true")
            if profile.verify_server_certificate:
                lines.append("verify_server_certificate = true")
            lines.append(f"connect_timeout = {profile.connect_timeout}")
            lines.append("")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _toml_string(value: str) -> str:
    """Quote ``value`` as a TOML basic string."""

    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    parts = []
    for char in escaped:
        if char < " " or char == "\x7f":
            parts.append(f"\\u{ord(char):04x}")
        else:
            parts.append(char)
    return '"' + "".join(parts) + '"'


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        active_profile = raw.get("active_profile")
        if isinstance(active_profile, str):
            data["active_profile"] = active_profile
        profiles = raw.get("profiles")
        if isinstance(profiles, list):
            parsed_profiles: list[dict[str, object]] = []
            for profile in profiles:
                if not isinstance(profile, dict):
                    continue
                parsed: dict[str, object] = {}
                for key in _STRING_KEYS:
                    value = profile.get(key)
                    if isinstance(value, str):
                        parsed[key] = value
                for key in _BOOL_KEYS:
                    value = profile.get(key)
                    if isinstance(value, bool):
                        parsed[key] = value
                port = profile.get("port")
                if isinstance(port, int) and not isinstance(port, bool):
                    parsed["port"] = port
                timeout = profile.get("connect_timeout")
                if isinstance(timeout, (int, float)) and not isinstance(timeout, bool):
                    parsed["connect_timeout"] = float(timeout)
                if parsed.get("name"):
                    parsed_profiles.append(parsed)
            if parsed_profiles:
                data["profiles"] = parsed_profiles
    return data


def _default_profiles() -> tuple[ConnectionProfileConfig, ...]:
    """Default profile used before config is customized."""

    return (
        ConnectionProfileConfig(
            name="Local",
            host="localhost",
            port=5432,
            database="postgres",
            user="postgres",
        ),
    )
