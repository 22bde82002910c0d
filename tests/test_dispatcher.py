"""Tests for the per-server collection cycle."""

from __future__ import annotations

from dataclasses import dataclass

import pytest
from conftest import (
    SERVER_A,
    SERVER_B,
    FakeQualityClient,
    FakeSelector,
    make_collector,
    make_project,
)

from qualisync.config import ServerEntry
from qualisync.data.protocols import CollectorProtocol
from qualisync.data.repositories import (
    ComponentRepository,
    ConfigChangeRepository,
    ProjectRepository,
    QualitySnapshotRepository,
)
from qualisync.models.collectors import CollectorKind
from qualisync.models.components import ComponentItemRef, DashboardComponent
from qualisync.models.quality import QualitySnapshot
from qualisync.services.config_audit import ConfigChangeAuditor
from qualisync.services.dispatcher import ServerDispatcher
from qualisync.services.enablement import EnablementSynchronizer
from qualisync.services.reconciliation import InventoryReconciler
from qualisync.services.snapshots import QualitySnapshotRefresher


@dataclass
class StaticCollector:
    """Collector capability backed by a plain dataclass rather than the stored model."""

    id: str
    name: str
    kind: CollectorKind
    servers: tuple[ServerEntry, ...]

    def server_urls(self) -> list[str]:
        return [server.url for server in self.servers]

    def display_name_for(self, instance_url: str) -> str:
        names = {server.url: server.display_name or "" for server in self.servers}
        return names.get(instance_url, "")

    def credentials_at(self, index: int) -> tuple[str | None, str | None, str | None]:
        server = self.servers[index]
        return server.username, server.password, server.token


CHANGE = {
    "date": "2024-03-01T10:15:00+0000",
    "action": "ACTIVATED",
    "authorLogin": "alice",
    "authorName": "Alice",
}


@pytest.fixture
def build_dispatcher(
    project_repo: ProjectRepository,
    component_repo: ComponentRepository,
    snapshot_repo: QualitySnapshotRepository,
    config_change_repo: ConfigChangeRepository,
):  # type: ignore[no-untyped-def]
    def build(selector: FakeSelector) -> ServerDispatcher:
        return ServerDispatcher(
            projects=project_repo,
            selector=selector,  # type: ignore[arg-type]
            reconciler=InventoryReconciler(project_repo, component_repo),
            enablement=EnablementSynchronizer(project_repo, component_repo),
            refresher=QualitySnapshotRefresher(project_repo, snapshot_repo, clock=lambda: 99),
            auditor=ConfigChangeAuditor(config_change_repo),
        )

    return build


@pytest.fixture
def collector():  # type: ignore[no-untyped-def]
    return make_collector(
        ServerEntry(url=SERVER_A, display_name="Team A", token="tok-a"),
        ServerEntry(url=SERVER_B, username="bob", password="secret"),
    )


class TestServerDispatcher:
    @pytest.mark.asyncio
    async def test_full_cycle_creates_disabled_projects_per_server(
        self, build_dispatcher, collector, project_repo: ProjectRepository
    ) -> None:
        clients = {
            SERVER_A: FakeQualityClient(SERVER_A, ["p1", "p2"]),
            SERVER_B: FakeQualityClient(SERVER_B, ["p3"]),
        }
        dispatcher = build_dispatcher(FakeSelector(clients, {}))

        result = await dispatcher.collect(collector)

        assert result.servers_processed == 2
        assert result.projects_fetched == 3
        assert result.projects_created == 3
        assert result.projects_deleted == 0
        stored = await project_repo.find_by_collector_ids(["col-1"])
        assert sorted((p.instance_url, p.project_key) for p in stored) == [
            (SERVER_A, "p1"),
            (SERVER_A, "p2"),
            (SERVER_B, "p3"),
        ]
        assert not any(p.enabled for p in stored)

    @pytest.mark.asyncio
    async def test_servers_are_visited_in_configuration_order_with_their_credentials(
        self, build_dispatcher
    ) -> None:
        third = "https://sonar-c.example.com"
        collector = make_collector(
            ServerEntry(url=SERVER_A, token="tok-a"),
            ServerEntry(url=SERVER_B, username="bob", password="secret"),
            ServerEntry(url=third),
        )
        clients = {url: FakeQualityClient(url) for url in (SERVER_A, SERVER_B, third)}
        selector = FakeSelector(clients, {})

        await build_dispatcher(selector).collect(collector)

        assert selector.resolved == [SERVER_A, SERVER_B, third]
        assert clients[SERVER_A].credentials == (None, None, "tok-a")
        assert clients[SERVER_B].credentials == ("bob", "secret", None)
        assert clients[third].credentials == (None, None, None)

    @pytest.mark.asyncio
    async def test_second_identical_cycle_changes_nothing(
        self, build_dispatcher, collector
    ) -> None:
        clients = {
            SERVER_A: FakeQualityClient(SERVER_A, ["p1", "p2"]),
            SERVER_B: FakeQualityClient(SERVER_B, ["p3"]),
        }
        dispatcher = build_dispatcher(FakeSelector(clients, {}))

        await dispatcher.collect(collector)
        second = await dispatcher.collect(collector)

        assert (second.projects_created, second.projects_updated, second.projects_deleted) == (
            0,
            0,
            0,
        )

    @pytest.mark.asyncio
    async def test_enabled_project_gets_snapshot_and_stale_project_is_deleted(
        self,
        build_dispatcher,
        collector,
        project_repo: ProjectRepository,
        component_repo: ComponentRepository,
        snapshot_repo: QualitySnapshotRepository,
    ) -> None:
        p1 = make_project("p1")
        stale = make_project("gone", enabled=True)
        pushed = make_project("pushed", pushed=True)
        await project_repo.save_all([p1, stale, pushed])
        await component_repo.save_all(
            [
                DashboardComponent(
                    id="comp-1",
                    collector_items={
                        "CodeQuality": [
                            ComponentItemRef(id=p1.id, collector_id="col-1"),
                            ComponentItemRef(id=stale.id, collector_id="col-1"),
                        ]
                    },
                )
            ]
        )
        clients = {
            SERVER_A: FakeQualityClient(
                SERVER_A, ["p1"], snapshots={"p1": QualitySnapshot(timestamp=5_000)}
            ),
            SERVER_B: FakeQualityClient(SERVER_B),
        }

        result = await build_dispatcher(FakeSelector(clients, {})).collect(collector)

        assert result.projects_enabled == 1
        assert result.snapshots_added == 1
        assert result.projects_deleted == 1
        assert await snapshot_repo.latest_timestamp(p1.id) == 5_000
        assert await project_repo.get(stale.id) is None
        assert await project_repo.get(pushed.id) is not None
        comp = await component_repo.get("comp-1")
        assert comp is not None
        assert [ref.id for ref in comp.collector_items["CodeQuality"]] == [p1.id]

    @pytest.mark.asyncio
    async def test_old_servers_skip_config_history(
        self, build_dispatcher, collector, config_change_repo: ConfigChangeRepository
    ) -> None:
        clients = {
            SERVER_A: FakeQualityClient(
                SERVER_A, profiles={"java": ["p1"]}, changes={"java": [CHANGE]}
            ),
            SERVER_B: FakeQualityClient(
                SERVER_B, profiles={"java": ["p1"]}, changes={"java": [CHANGE]}
            ),
        }

        result = await build_dispatcher(FakeSelector(clients, {SERVER_B: 4.8})).collect(collector)

        assert clients[SERVER_A].changelog_requests == ["java"]
        assert clients[SERVER_B].changelog_requests == []
        assert result.config_changes_added == 1
        assert len(await config_change_repo.list_for_collector("col-1")) == 1

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_stop_the_cycle(
        self, build_dispatcher, collector, project_repo: ProjectRepository
    ) -> None:
        clients = {
            SERVER_A: FakeQualityClient(SERVER_A, ["p1"], fail_profiles=True),
            SERVER_B: FakeQualityClient(SERVER_B, ["p3"]),
        }

        result = await build_dispatcher(FakeSelector(clients, {})).collect(collector)

        assert result.audit_failures == 1
        assert result.servers_processed == 2
        assert len(await project_repo.find_by_collector_ids(["col-1"])) == 2

    @pytest.mark.asyncio
    async def test_inventory_failure_aborts_before_deletion(
        self, build_dispatcher, collector, project_repo: ProjectRepository
    ) -> None:
        stale = make_project("gone")
        await project_repo.save_all([stale])
        clients = {
            SERVER_A: FakeQualityClient(SERVER_A, ["p1"]),
            SERVER_B: FakeQualityClient(SERVER_B, fail_inventory=True),
        }

        with pytest.raises(RuntimeError, match="inventory unavailable"):
            await build_dispatcher(FakeSelector(clients, {})).collect(collector)

        assert await project_repo.get(stale.id) is not None

    @pytest.mark.asyncio
    async def test_progress_is_reported_per_server(self, build_dispatcher, collector) -> None:
        clients = {url: FakeQualityClient(url) for url in (SERVER_A, SERVER_B)}
        calls: list[tuple[int, int, str]] = []

        await build_dispatcher(FakeSelector(clients, {})).collect(
            collector, progress_callback=lambda c, t, m: calls.append((c, t, m))
        )

        assert calls == [
            (1, 2, f"Finished {SERVER_A}"),
            (2, 2, f"Finished {SERVER_B}"),
        ]

    @pytest.mark.asyncio
    async def test_no_servers_deletes_every_unpushed_project(
        self, build_dispatcher, project_repo: ProjectRepository
    ) -> None:
        p1 = make_project("p1")
        pushed = make_project("p2", pushed=True)
        await project_repo.save_all([p1, pushed])

        result = await build_dispatcher(FakeSelector({}, {})).collect(make_collector())

        assert result.servers_processed == 0
        assert result.projects_deleted == 1
        remaining = await project_repo.find_by_collector_ids(["col-1"])
        assert [p.id for p in remaining] == [pushed.id]

    @pytest.mark.asyncio
    async def test_server_listed_twice_keeps_one_record_per_identity(
        self, build_dispatcher, project_repo: ProjectRepository
    ) -> None:
        collector = make_collector(ServerEntry(url=SERVER_A), ServerEntry(url=SERVER_A))
        clients = {SERVER_A: FakeQualityClient(SERVER_A, ["p1"])}
        dispatcher = build_dispatcher(FakeSelector(clients, {}))

        first = await dispatcher.collect(collector)
        second = await dispatcher.collect(collector)

        assert first.projects_created == 1
        assert first.projects_deleted == 0
        assert second.projects_created == 0
        stored = await project_repo.find_by_collector_ids(["col-1"])
        assert [p.identity for p in stored] == [("col-1", SERVER_A, "p1")]

    @pytest.mark.asyncio
    async def test_cycle_only_needs_the_collector_capability(
        self, build_dispatcher, project_repo: ProjectRepository
    ) -> None:
        stale = make_project("gone")
        await project_repo.save_all([stale])
        collector: CollectorProtocol = StaticCollector(
            id="col-1",
            name="Sonar",
            kind=CollectorKind.CODE_QUALITY,
            servers=(ServerEntry(url=SERVER_A, display_name="Team A", token="tok-a"),),
        )
        clients = {SERVER_A: FakeQualityClient(SERVER_A, ["p1"])}

        result = await build_dispatcher(FakeSelector(clients, {})).collect(collector)

        assert (result.projects_created, result.projects_deleted) == (1, 1)
        assert clients[SERVER_A].credentials == (None, None, "tok-a")
        stored = await project_repo.find_by_collector_ids(["col-1"])
        assert [(p.project_key, p.nice_name) for p in stored] == [("p1", "Team A")]
