"""Inventory reconciliation between remote project lists and persisted projects."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from qualisync.models.cycles import ReconcileDelta
from qualisync.models.projects import Project, ProjectIdentity

if TYPE_CHECKING:
    from collections.abc import Iterable

    from qualisync.data.protocols import (
        CollectorProtocol,
        ComponentStoreProtocol,
        ProjectStoreProtocol,
    )
    from qualisync.models.collectors import CollectorKind
    from qualisync.models.remote import RemoteProject

logger = logging.getLogger(__name__)


class InventoryReconciler:
    """Applies add/update/delete deltas for one collector's projects."""

    def __init__(
        self,
        projects: ProjectStoreProtocol,
        components: ComponentStoreProtocol,
    ) -> None:
        self._projects = projects
        self._components = components

    async def apply_inventory(
        self,
        remote_projects: list[RemoteProject],
        existing_projects: list[Project],
        collector: CollectorProtocol,
    ) -> ReconcileDelta:
        """Create unseen projects and refresh matched ones.

        New projects are created disabled. Every persisted project sharing the
        identity of a remote entry gets its server-side id refreshed and its
        display name backfilled when empty. Creates and updates are written
        as two batches once the whole inventory has been scanned.
        Created projects are appended to ``existing_projects`` so a later
        server pass in the same cycle matches them instead of creating again.
        """
        by_identity = _index_by_identity(existing_projects)
        new_projects: list[Project] = []
        created_keys: set[ProjectIdentity] = set()
        updated: dict[str, Project] = {}

        for remote in remote_projects:
            identity = (collector.id, remote.instance_url, remote.project_key)
            nice_name = collector.display_name_for(remote.instance_url)
            matches = by_identity.get(identity)
            if not matches:
                if identity in created_keys:
                    continue
                created_keys.add(identity)
                new_projects.append(
                    Project(
                        collector_id=collector.id,
                        instance_url=remote.instance_url,
                        project_key=remote.project_key,
                        project_id=remote.project_id,
                        project_name=remote.name or remote.project_key,
                        nice_name=nice_name,
                        description=remote.name or remote.project_key,
                        enabled=False,
                    )
                )
                continue

            for existing in matches:
                changed = False
                if remote.project_id and existing.project_id != remote.project_id:
                    existing.project_id = remote.project_id
                    changed = True
                if not existing.nice_name and nice_name:
                    existing.nice_name = nice_name
                    changed = True
                if changed:
                    updated[existing.id] = existing

        if new_projects:
            await self._projects.save_all(new_projects)
            existing_projects.extend(new_projects)
        if updated:
            await self._projects.save_all(list(updated.values()))
        logger.info(
            "Reconciled %d remote projects for %s: %d new, %d updated",
            len(remote_projects),
            collector.name,
            len(new_projects),
            len(updated),
        )
        return ReconcileDelta(created=len(new_projects), updated=len(updated))

    async def delete_stale(
        self,
        latest_projects: list[RemoteProject],
        existing_projects: list[Project],
        collector: CollectorProtocol,
    ) -> int:
        """Delete projects no configured server reports anymore. Pushed projects are kept."""
        server_urls = set(collector.server_urls())
        latest = {
            (collector.id, remote.instance_url, remote.project_key) for remote in latest_projects
        }
        to_delete: list[Project] = []

        for project in existing_projects:
            if project.pushed:
                continue
            if (
                project.instance_url in server_urls
                and project.collector_id == collector.id
                and project.identity in latest
            ):
                continue
            if project.enabled:
                logger.debug("Dropping enabled project %s", project.project_key)
                await self._remove_from_components(project, collector.kind)
            else:
                logger.debug("Dropping disabled project %s", project.project_key)
            to_delete.append(project)

        if to_delete:
            await self._projects.delete_all(to_delete)
            logger.info("Deleted %d stale projects for %s", len(to_delete), collector.name)
        return len(to_delete)

    async def _remove_from_components(self, project: Project, kind: CollectorKind) -> None:
        """Unlink ``project`` from every dashboard component before deletion.

        Only the slot of ``kind`` is touched; other kinds sharing the component
        keep their references.
        """
        components = await self._components.find_by_kind_and_item_ids(kind, [project.id])
        for component in components:
            component.remove_item(str(kind), project.id)
        await self._components.save_all(components)


def _index_by_identity(projects: Iterable[Project]) -> dict[ProjectIdentity, list[Project]]:
    index: dict[ProjectIdentity, list[Project]] = {}
    for project in projects:
        index.setdefault(project.identity, []).append(project)
    return index
