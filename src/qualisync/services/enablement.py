"""Derive project enabled flags from dashboard component references."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from qualisync.data.protocols import (
        CollectorProtocol,
        ComponentStoreProtocol,
        ProjectStoreProtocol,
    )
    from qualisync.models.projects import Project

logger = logging.getLogger(__name__)


class EnablementSynchronizer:
    """Enables projects referenced by a dashboard and disables the rest."""

    def __init__(
        self,
        projects: ProjectStoreProtocol,
        components: ComponentStoreProtocol,
    ) -> None:
        self._projects = projects
        self._components = components

    async def sync(
        self, collector: CollectorProtocol, existing_projects: list[Project]
    ) -> tuple[int, int]:
        """Flip flags that disagree with the dashboards and save only those records.

        ``existing_projects`` is updated in place so later stages of the same
        cycle see the new state.

        Returns:
            (enabled, disabled) counts.
        """
        referenced = await self._components.referenced_item_ids(collector.kind, collector.id)
        changed: list[Project] = []
        enabled = disabled = 0

        for project in existing_projects:
            wanted = project.id in referenced
            if project.enabled == wanted:
                continue
            project.enabled = wanted
            changed.append(project)
            if wanted:
                enabled += 1
            else:
                disabled += 1

        if changed:
            await self._projects.save_all(changed)
            logger.info(
                "%s: enabled %d and disabled %d projects", collector.name, enabled, disabled
            )
        return enabled, disabled
