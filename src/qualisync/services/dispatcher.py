"""Per-server dispatch of one collection cycle."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from result import Err

from qualisync.models.cycles import CycleResult
from qualisync.services.config_audit import supports_config_history

if TYPE_CHECKING:
    from qualisync.data.protocols import (
        ClientSelectorProtocol,
        CollectorProtocol,
        ProgressCallback,
        ProjectStoreProtocol,
    )
    from qualisync.models.remote import RemoteProject
    from qualisync.services.config_audit import ConfigChangeAuditor
    from qualisync.services.enablement import EnablementSynchronizer
    from qualisync.services.reconciliation import InventoryReconciler
    from qualisync.services.snapshots import QualitySnapshotRefresher

logger = logging.getLogger(__name__)


class ServerDispatcher:
    """Drives one cycle across a collector's configured servers, one at a time."""

    def __init__(
        self,
        projects: ProjectStoreProtocol,
        selector: ClientSelectorProtocol,
        reconciler: InventoryReconciler,
        enablement: EnablementSynchronizer,
        refresher: QualitySnapshotRefresher,
        auditor: ConfigChangeAuditor,
    ) -> None:
        self._projects = projects
        self._selector = selector
        self._reconciler = reconciler
        self._enablement = enablement
        self._refresher = refresher
        self._auditor = auditor

    async def collect(
        self,
        collector: CollectorProtocol,
        progress_callback: ProgressCallback | None = None,
    ) -> CycleResult:
        """Run one collection cycle for ``collector``.

        Enablement is synchronized first, then each server is processed in
        configuration order, then stale projects are deleted. Failures other
        than the config-change audit propagate and end the cycle early.
        """
        start = time.monotonic()
        result = CycleResult()
        existing = await self._projects.find_by_collector_ids([collector.id])
        result.projects_enabled, result.projects_disabled = await self._enablement.sync(
            collector, existing
        )

        latest: list[RemoteProject] = []
        total = len(collector.servers)
        for index, server in enumerate(collector.servers):
            instance_url = server.url
            logger.info("%s: collecting from %s", collector.name, instance_url)

            version = await self._selector.resolve_version(instance_url)
            client = self._selector.client_for(version, collector.kind)
            client.set_credentials(*collector.credentials_at(index))

            remote_projects = await client.list_projects(instance_url)
            latest.extend(remote_projects)
            result.projects_fetched += len(remote_projects)
            logger.info("Fetched %d projects from %s", len(remote_projects), instance_url)

            delta = await self._reconciler.apply_inventory(remote_projects, existing, collector)
            result.projects_created += delta.created
            result.projects_updated += delta.updated

            enabled = await self._projects.find_enabled(collector.id, instance_url)
            result.snapshots_added += await self._refresher.refresh(enabled, client)

            if supports_config_history(version):
                audit = await self._auditor.record(collector, instance_url, client)
                if isinstance(audit, Err):
                    logger.error(audit.err_value)
                    result.audit_failures += 1
                else:
                    result.config_changes_added += audit.ok_value
            else:
                logger.info(
                    "Skipping config change history for %s (version %s)", instance_url, version
                )

            result.servers_processed += 1
            if progress_callback:
                progress_callback(index + 1, total, f"Finished {instance_url}")

        result.projects_deleted = await self._reconciler.delete_stale(latest, existing, collector)
        logger.info(
            "%s: cycle finished in %.1fs (%s)", collector.name, time.monotonic() - start, result
        )
        return result
