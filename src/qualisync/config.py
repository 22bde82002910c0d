"""Configuration for qualisync."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_CRON = "0 0/5 * * * *"
DEFAULT_STATIC_METRICS = (
    "ncloc,violations,new_vulnerabilities,critical_violations,major_violations,"
    "blocker_violations,tests,test_success_density,test_errors,test_failures,"
    "coverage,line_coverage,sqale_index,alert_status,quality_gate_details"
)
DEFAULT_SECURITY_METRICS = (
    "vulnerabilities,new_vulnerabilities,security_rating,security_hotspots,alert_status"
)
DEFAULT_LEGACY_METRICS = (
    "ncloc,violations,critical_violations,major_violations,blocker_violations,"
    "tests,test_success_density,test_errors,test_failures,coverage,line_coverage,"
    "sqale_index,alert_status,quality_gate_details"
)


class ConfigError(ValueError):
    """Raised when a configuration file cannot be turned into a Config."""


@dataclass(frozen=True)
class ServerEntry:
    """One configured analysis server. Absent values stay None."""

    url: str
    display_name: str | None = None
    username: str | None = None
    password: str | None = None
    token: str | None = None


@dataclass(frozen=True)
class Config:
    """Application configuration snapshot, passed into every collection cycle."""

    cache_dir: Path = field(default_factory=lambda: Path.home() / ".cache" / "qualisync")
    cron: str = DEFAULT_CRON
    servers: tuple[ServerEntry, ...] = ()
    static_metrics: str = DEFAULT_STATIC_METRICS
    security_metrics: str = DEFAULT_SECURITY_METRICS
    legacy_metrics: str = DEFAULT_LEGACY_METRICS
    request_timeout: float = 30.0

    @property
    def db_path(self) -> Path:
        return self.cache_dir / "qualisync.db"

    @classmethod
    def from_toml(cls, path: Path) -> Config:
        """Load configuration from the ``[sonar]`` table of a TOML file."""
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Cannot read config {path}: {exc}") from exc
        section = data.get("sonar", data)
        if not isinstance(section, dict):
            raise ConfigError(f"[sonar] in {path} must be a table")
        return cls.from_mapping(section)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Config:
        """Build a Config from a parsed mapping.

        Servers may be given either as a list of tables (``[[sonar.server]]``
        with ``url``, ``display_name``, ``username``, ``password``, ``token``)
        or in the legacy form of parallel lists (``servers``, ``nice_names``,
        ``usernames``, ``passwords``, ``tokens``). Parallel lists shorter than
        the server list resolve to None for the missing positions.
        """
        kwargs: dict[str, Any] = {}
        if "cache_dir" in data:
            kwargs["cache_dir"] = Path(str(data["cache_dir"])).expanduser()
        for key in ("cron", "static_metrics", "security_metrics", "legacy_metrics"):
            if key in data:
                kwargs[key] = str(data[key])
        if "request_timeout" in data:
            try:
                kwargs["request_timeout"] = float(data["request_timeout"])
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"request_timeout must be a number: {exc}") from exc
        kwargs["servers"] = _servers_from_mapping(data)
        return cls(**kwargs)


def _servers_from_mapping(data: dict[str, Any]) -> tuple[ServerEntry, ...]:
    tables = data.get("server")
    if tables is not None:
        if not isinstance(tables, list):
            raise ConfigError("server must be an array of tables ([[sonar.server]])")
        entries: list[ServerEntry] = []
        for index, table in enumerate(tables):
            if not isinstance(table, dict):
                raise ConfigError(f"server entry {index} is not a table")
            url = str(table.get("url") or "").strip()
            if not url:
                raise ConfigError(f"server entry {index} has no url")
            entries.append(
                ServerEntry(
                    url=url,
                    display_name=_opt_str(table.get("display_name")),
                    username=_opt_str(table.get("username")),
                    password=_opt_str(table.get("password")),
                    token=_opt_str(table.get("token")),
                )
            )
        return tuple(entries)

    urls = [str(url).strip() for url in _list_value(data, "servers")]
    nice_names = _list_value(data, "nice_names")
    usernames = _list_value(data, "usernames")
    passwords = _list_value(data, "passwords")
    tokens = _list_value(data, "tokens")
    return tuple(
        ServerEntry(
            url=url,
            display_name=_opt_str(value_at(nice_names, i)),
            username=_opt_str(value_at(usernames, i)),
            password=_opt_str(value_at(passwords, i)),
            token=_opt_str(value_at(tokens, i)),
        )
        for i, url in enumerate(urls)
        if url
    )


def value_at(values: list[Any] | tuple[Any, ...] | None, index: int) -> Any | None:
    """Return ``values[index]`` or None when the list is empty or too short."""
    if not values or index >= len(values):
        return None
    return values[index]


def _list_value(data: dict[str, Any], key: str) -> list[Any]:
    values = data.get(key) or []
    if not isinstance(values, list):
        raise ConfigError(f"{key} must be a list")
    return values


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
