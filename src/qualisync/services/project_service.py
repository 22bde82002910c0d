"""Project service: queries and push registration for project records."""

from __future__ import annotations

from typing import TYPE_CHECKING

from result import Err, Ok, Result

from qualisync.models.projects import Project, ProjectSummary
from qualisync.services.snapshots import now_ms

if TYPE_CHECKING:
    from qualisync.data.repositories import ProjectRepository, QualitySnapshotRepository
    from qualisync.models.quality import QualitySnapshot


class ProjectService:
    """Service for project queries."""

    def __init__(
        self,
        projects: ProjectRepository,
        snapshots: QualitySnapshotRepository,
    ) -> None:
        self._projects = projects
        self._snapshots = snapshots

    async def list_projects(
        self, collector_id: str = "", enabled_only: bool = False
    ) -> Result[list[ProjectSummary], str]:
        """List projects with their latest snapshot timestamp."""
        projects = await self._projects.list_all(collector_id, enabled_only)
        summaries: list[ProjectSummary] = []
        for project in projects:
            latest = await self._snapshots.latest_timestamp(project.id)
            summaries.append(
                ProjectSummary(
                    id=project.id,
                    collector_id=project.collector_id,
                    instance_url=project.instance_url,
                    project_key=project.project_key,
                    nice_name=project.nice_name,
                    enabled=project.enabled,
                    pushed=project.pushed,
                    last_updated=project.last_updated,
                    latest_snapshot=latest or 0,
                )
            )
        return Ok(summaries)

    async def get_project(self, item_id: str) -> Result[Project, str]:
        """Get a single project by collector-item id."""
        project = await self._projects.get(item_id)
        if project is None:
            return Err(f"Project {item_id} not found")
        return Ok(project)

    async def latest_snapshot(self, item_id: str) -> Result[QualitySnapshot, str]:
        snapshot = await self._snapshots.latest(item_id)
        if snapshot is None:
            return Err(f"No snapshot stored for project {item_id}")
        return Ok(snapshot)

    async def push_project(
        self,
        collector_id: str,
        instance_url: str,
        project_key: str,
        name: str = "",
    ) -> Result[Project, str]:
        """Register a pushed project, which collection cycles never delete.

        An existing record with the same identity is marked pushed instead of
        creating a duplicate.
        """
        if not collector_id or not instance_url.strip() or not project_key.strip():
            return Err("collector id, instance url and project key are required")
        existing = await self._projects.find_by_identity(collector_id, instance_url, project_key)
        if existing:
            project = existing[0]
            if not project.pushed:
                project.pushed = True
                await self._projects.save_all([project])
            return Ok(project)
        project = Project(
            collector_id=collector_id,
            instance_url=instance_url,
            project_key=project_key,
            project_name=name or project_key,
            description=name or project_key,
            pushed=True,
            last_updated=now_ms(),
        )
        await self._projects.save_all([project])
        return Ok(project)
