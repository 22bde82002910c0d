"""Service container with DI wiring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from qualisync.data.db import Database
from qualisync.data.repositories import (
    CollectorRepository,
    ComponentRepository,
    ConfigChangeRepository,
    ProjectRepository,
    QualitySnapshotRepository,
)
from qualisync.data.sonar_client import SonarClientSelector
from qualisync.models.collectors import CollectorKind
from qualisync.services.collector_task import CollectorTask
from qualisync.services.config_audit import ConfigChangeAuditor
from qualisync.services.dispatcher import ServerDispatcher
from qualisync.services.enablement import EnablementSynchronizer
from qualisync.services.project_service import ProjectService
from qualisync.services.reconciliation import InventoryReconciler
from qualisync.services.snapshots import QualitySnapshotRefresher

if TYPE_CHECKING:
    from qualisync.config import Config


@dataclass
class ServiceContainer:
    """Holds all application services. Built once at startup, immutable."""

    db: Database
    http: httpx.AsyncClient
    project_service: ProjectService
    tasks: dict[CollectorKind, CollectorTask]

    @classmethod
    async def create(cls, config: Config) -> ServiceContainer:
        """Async factory that wires all dependencies."""
        db = Database(config.db_path)
        await db.connect()
        http = httpx.AsyncClient(timeout=config.request_timeout)

        collectors = CollectorRepository(db)
        projects = ProjectRepository(db)
        components = ComponentRepository(db)
        snapshots = QualitySnapshotRepository(db)
        config_changes = ConfigChangeRepository(db)

        dispatcher = ServerDispatcher(
            projects=projects,
            selector=SonarClientSelector(http, config),
            reconciler=InventoryReconciler(projects, components),
            enablement=EnablementSynchronizer(projects, components),
            refresher=QualitySnapshotRefresher(projects, snapshots),
            auditor=ConfigChangeAuditor(config_changes),
        )
        tasks = {
            kind: CollectorTask(kind, config, collectors, dispatcher) for kind in CollectorKind
        }

        return cls(
            db=db,
            http=http,
            project_service=ProjectService(projects, snapshots),
            tasks=tasks,
        )

    async def close(self) -> None:
        """Shut down all services."""
        await self.http.aclose()
        await self.db.close()
