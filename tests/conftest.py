"""Shared fixtures for qualisync tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from qualisync.config import Config, ServerEntry
from qualisync.data.db import Database
from qualisync.data.repositories import (
    CollectorRepository,
    ComponentRepository,
    ConfigChangeRepository,
    ProjectRepository,
    QualitySnapshotRepository,
)
from qualisync.models.collectors import Collector, CollectorKind
from qualisync.models.projects import Project
from qualisync.models.quality import QualitySnapshot
from qualisync.models.remote import ChangeEvent, ProfileDescriptor, RemoteProject

SERVER_A = "https://sonar-a.example.com"
SERVER_B = "https://sonar-b.example.com"


class FakeQualityClient:
    """In-memory stand-in for one server's remote quality client."""

    def __init__(
        self,
        server_url: str,
        project_keys: list[str] | None = None,
        *,
        snapshots: dict[str, QualitySnapshot] | None = None,
        profiles: dict[str, list[str]] | None = None,
        changes: dict[str, list[dict[str, str]]] | None = None,
        fail_profiles: bool = False,
        fail_inventory: bool = False,
    ) -> None:
        self.server_url = server_url
        self.project_keys = project_keys or []
        self.snapshots = snapshots or {}
        self.profiles = profiles or {}
        self.changes = changes or {}
        self.fail_profiles = fail_profiles
        self.fail_inventory = fail_inventory
        self.credentials: tuple[str | None, str | None, str | None] | None = None
        self.quality_requests: list[str] = []
        self.changelog_requests: list[str] = []

    def set_credentials(
        self, username: str | None, password: str | None, token: str | None
    ) -> None:
        self.credentials = (username, password, token)

    async def list_projects(self, server_url: str) -> list[RemoteProject]:
        if self.fail_inventory:
            raise RuntimeError("inventory unavailable")
        return [
            RemoteProject(
                instance_url=server_url,
                project_key=key,
                project_id=f"id-{key}",
                name=key.upper(),
            )
            for key in self.project_keys
        ]

    async def fetch_quality(self, project: Project) -> QualitySnapshot | None:
        self.quality_requests.append(project.project_key)
        return self.snapshots.get(project.project_key)

    async def list_quality_profiles(self, server_url: str) -> list[ProfileDescriptor]:
        if self.fail_profiles:
            raise RuntimeError("changelog endpoint down")
        return [ProfileDescriptor(key=key, name=key) for key in self.profiles]

    async def projects_for_profile(self, server_url: str, profile_key: str) -> list[str] | None:
        return self.profiles.get(profile_key) or None

    async def profile_changes(self, server_url: str, profile_key: str) -> list[ChangeEvent]:
        self.changelog_requests.append(profile_key)
        return [ChangeEvent.model_validate(event) for event in self.changes.get(profile_key, [])]


class FakeSelector:
    """Client selector serving one FakeQualityClient per server URL."""

    def __init__(self, clients: dict[str, FakeQualityClient], versions: dict[str, float]) -> None:
        self.clients = clients
        self.versions = versions
        self.resolved: list[str] = []
        self._current = ""

    async def resolve_version(self, server_url: str) -> float:
        self.resolved.append(server_url)
        self._current = server_url
        return self.versions.get(server_url, 9.9)

    def client_for(self, version: float, kind: CollectorKind) -> FakeQualityClient:
        return self.clients[self._current]


def make_collector(
    *servers: ServerEntry,
    collector_id: str = "col-1",
    kind: CollectorKind = CollectorKind.CODE_QUALITY,
) -> Collector:
    return Collector(id=collector_id, name=kind.collector_name, kind=kind, servers=servers)


def make_project(key: str, instance_url: str = SERVER_A, **fields: object) -> Project:
    values: dict[str, object] = {
        "collector_id": "col-1",
        "instance_url": instance_url,
        "project_key": key,
        "project_id": f"id-{key}",
        "project_name": key.upper(),
    }
    values.update(fields)
    return Project(**values)  # type: ignore[arg-type]


@pytest.fixture
async def in_memory_db() -> AsyncGenerator[Database]:
    """SQLite in-memory database for fast unit/integration tests."""
    db = Database(Path(":memory:"))
    await db.__aenter__()
    yield db  # type: ignore[misc]
    await db.__aexit__(None, None, None)


@pytest.fixture
def project_repo(in_memory_db: Database) -> ProjectRepository:
    return ProjectRepository(in_memory_db)


@pytest.fixture
def component_repo(in_memory_db: Database) -> ComponentRepository:
    return ComponentRepository(in_memory_db)


@pytest.fixture
def snapshot_repo(in_memory_db: Database) -> QualitySnapshotRepository:
    return QualitySnapshotRepository(in_memory_db)


@pytest.fixture
def config_change_repo(in_memory_db: Database) -> ConfigChangeRepository:
    return ConfigChangeRepository(in_memory_db)


@pytest.fixture
def collector_repo(in_memory_db: Database) -> CollectorRepository:
    return CollectorRepository(in_memory_db)


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Config with two servers and a temporary cache directory."""
    return Config(
        cache_dir=tmp_path / "cache",
        servers=(
            ServerEntry(url=SERVER_A, display_name="Team A", token="tok-a"),
            ServerEntry(url=SERVER_B, username="bob", password="secret"),
        ),
    )
