"""Collection cycle result models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ReconcileDelta:
    """Records written by one inventory reconciliation."""

    created: int = 0
    updated: int = 0


@dataclass(slots=True)
class CycleResult:
    """Result summary for one collection cycle."""

    servers_processed: int = 0
    projects_fetched: int = 0
    projects_created: int = 0
    projects_updated: int = 0
    projects_deleted: int = 0
    projects_enabled: int = 0
    projects_disabled: int = 0
    snapshots_added: int = 0
    config_changes_added: int = 0
    audit_failures: int = 0
