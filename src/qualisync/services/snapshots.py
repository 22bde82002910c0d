"""Quality snapshot refresh for enabled projects."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from qualisync.data.protocols import (
        ProjectStoreProtocol,
        QualityStoreProtocol,
        RemoteQualityClientProtocol,
    )
    from qualisync.models.projects import Project

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class QualitySnapshotRefresher:
    """Appends a new snapshot whenever the server reports a newer analysis."""

    def __init__(
        self,
        projects: ProjectStoreProtocol,
        snapshots: QualityStoreProtocol,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._projects = projects
        self._snapshots = snapshots
        self._clock = clock

    async def refresh(self, projects: list[Project], client: RemoteQualityClientProtocol) -> int:
        """Fetch the current snapshot of each project and append the new ones."""
        count = 0
        for project in projects:
            if not project.enabled:
                continue
            snapshot = await client.fetch_quality(project)
            if snapshot is None:
                continue
            if await self._snapshots.latest_timestamp(project.id) == snapshot.timestamp:
                continue
            project.last_updated = self._clock()
            await self._projects.save_all([project])
            await self._snapshots.append(
                snapshot.model_copy(update={"collector_item_id": project.id})
            )
            count += 1
        logger.info("Updated %d of %d enabled projects", count, len(projects))
        return count
