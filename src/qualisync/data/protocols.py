"""Protocol definitions for data access and remote collaborators."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from qualisync.config import ServerEntry
from qualisync.models.collectors import Collector, CollectorKind
from qualisync.models.components import DashboardComponent
from qualisync.models.config_history import ConfigChangeOperation, ConfigChangeRecord
from qualisync.models.projects import Project
from qualisync.models.quality import QualitySnapshot
from qualisync.models.remote import ChangeEvent, ProfileDescriptor, RemoteProject


class DatabaseProtocol(Protocol):
    """Async database interface."""

    async def execute(self, sql: str, params: tuple[Any, ...] = ()) -> Any: ...

    async def execute_many(self, sql: str, params_seq: list[tuple[Any, ...]]) -> None: ...

    async def fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[Any]: ...

    async def fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> Any | None: ...

    async def commit(self) -> None: ...


class ServerListProvider(Protocol):
    """Capability of a collector variant to expose its ordered server list."""

    servers: tuple[ServerEntry, ...]

    def server_urls(self) -> list[str]: ...

    def display_name_for(self, instance_url: str) -> str: ...

    def credentials_at(self, index: int) -> tuple[str | None, str | None, str | None]: ...


class CollectorProtocol(ServerListProvider, Protocol):
    """What a collection cycle reads from a collector: identity, kind and servers."""

    id: str
    name: str
    kind: CollectorKind


class ProgressCallback(Protocol):
    """Callback for per-server progress updates."""

    def __call__(self, current: int, total: int, message: str) -> None: ...


class CollectorStoreProtocol(Protocol):
    async def register(self, name: str, kind: CollectorKind) -> str: ...

    async def find_by_name(self, name: str) -> Collector | None: ...

    async def mark_executed(self, collector_id: str, timestamp: int) -> None: ...


class ProjectStoreProtocol(Protocol):
    """Keyed storage of project records."""

    async def find_by_collector_ids(self, collector_ids: Iterable[str]) -> list[Project]: ...

    async def find_enabled(self, collector_id: str, instance_url: str) -> list[Project]: ...

    async def find_by_identity(
        self, collector_id: str, instance_url: str, project_key: str
    ) -> list[Project]: ...

    async def save_all(self, projects: list[Project]) -> None: ...

    async def delete_all(self, projects: list[Project]) -> None: ...


class ComponentStoreProtocol(Protocol):
    """Dashboard association index."""

    async def referenced_item_ids(self, kind: CollectorKind, collector_id: str) -> set[str]: ...

    async def find_by_kind_and_item_ids(
        self, kind: CollectorKind, item_ids: list[str]
    ) -> list[DashboardComponent]: ...

    async def save_all(self, components: list[DashboardComponent]) -> None: ...


class QualityStoreProtocol(Protocol):
    async def latest_timestamp(self, collector_item_id: str) -> int | None: ...

    async def append(self, snapshot: QualitySnapshot) -> None: ...


class ConfigChangeStoreProtocol(Protocol):
    async def exists(
        self,
        collector_id: str,
        user_id: str,
        operation: ConfigChangeOperation,
        timestamp: int,
    ) -> bool: ...

    async def save_all(self, records: list[ConfigChangeRecord]) -> None: ...


class RemoteQualityClientProtocol(Protocol):
    """Per-server adapter for one analysis server API version."""

    def set_credentials(
        self, username: str | None, password: str | None, token: str | None
    ) -> None: ...

    async def list_projects(self, server_url: str) -> list[RemoteProject]: ...

    async def fetch_quality(self, project: Project) -> QualitySnapshot | None: ...

    async def list_quality_profiles(self, server_url: str) -> list[ProfileDescriptor]: ...

    async def projects_for_profile(
        self, server_url: str, profile_key: str
    ) -> list[str] | None: ...

    async def profile_changes(self, server_url: str, profile_key: str) -> list[ChangeEvent]: ...


class ClientSelectorProtocol(Protocol):
    """Resolves a server's API version and picks the matching client."""

    async def resolve_version(self, server_url: str) -> float: ...

    def client_for(self, version: float, kind: CollectorKind) -> RemoteQualityClientProtocol: ...
