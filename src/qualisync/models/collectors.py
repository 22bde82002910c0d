"""Collector-level models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel

from qualisync.config import ServerEntry, value_at


class CollectorKind(StrEnum):
    """Metric kinds. The value is the dashboard component slot name."""

    CODE_QUALITY = "CodeQuality"
    STATIC_SECURITY_SCAN = "StaticSecurityScan"

    @property
    def collector_name(self) -> str:
        if self is CollectorKind.CODE_QUALITY:
            return "Sonar"
        return "SonarSecurity"

    @classmethod
    def from_option(cls, option: str) -> CollectorKind:
        """Map a CLI option (``quality``/``security``) or a slot name to a kind."""
        normalized = option.strip().lower()
        aliases = {
            "quality": cls.CODE_QUALITY,
            "codequality": cls.CODE_QUALITY,
            "security": cls.STATIC_SECURITY_SCAN,
            "staticsecurityscan": cls.STATIC_SECURITY_SCAN,
        }
        if normalized not in aliases:
            msg = f"Unknown collector kind: {option!r}"
            raise ValueError(msg)
        return aliases[normalized]


class Collector(BaseModel):
    """A registered collector for one metric kind and its configured servers."""

    id: str
    name: str
    kind: CollectorKind
    servers: tuple[ServerEntry, ...] = ()
    last_executed: int = 0

    def server_urls(self) -> list[str]:
        return [server.url for server in self.servers]

    def display_name_for(self, instance_url: str) -> str:
        """Display name paired with ``instance_url``; empty string when none."""
        for server in self.servers:
            if server.url.lower() == instance_url.lower() and server.display_name:
                return server.display_name
        return ""

    def credentials_at(self, index: int) -> tuple[str | None, str | None, str | None]:
        server = value_at(self.servers, index)
        if server is None:
            return None, None, None
        return server.username, server.password, server.token
