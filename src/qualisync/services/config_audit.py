"""Quality-profile configuration change audit recording."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from qualisync.models.config_history import ConfigChangeOperation, ConfigChangeRecord

if TYPE_CHECKING:
    from qualisync.data.protocols import (
        CollectorProtocol,
        ConfigChangeStoreProtocol,
        RemoteQualityClientProtocol,
    )
    from qualisync.models.remote import ChangeEvent

logger = logging.getLogger(__name__)

# Changelog endpoints appeared in server version 5.0.
MIN_CONFIG_HISTORY_VERSION = 5.0

_OPERATIONS = {
    "DEACTIVATED": ConfigChangeOperation.DELETED,
    "ACTIVATED": ConfigChangeOperation.CREATED,
}


def supports_config_history(version: float) -> bool:
    return version >= MIN_CONFIG_HISTORY_VERSION


def operation_for_action(action: str) -> ConfigChangeOperation:
    return _OPERATIONS.get(action, ConfigChangeOperation.CHANGED)


def record_from_event(collector_id: str, event: ChangeEvent) -> ConfigChangeRecord:
    return ConfigChangeRecord(
        collector_id=collector_id,
        user_name=event.author_name,
        user_id=event.author_login,
        operation=operation_for_action(event.action),
        timestamp=event.epoch_millis(),
        change_map={"event": event.raw()},
    )


class ConfigChangeAuditor:
    """Fetches quality-profile changelogs and stores each change once."""

    def __init__(self, store: ConfigChangeStoreProtocol) -> None:
        self._store = store

    async def record(
        self,
        collector: CollectorProtocol,
        instance_url: str,
        client: RemoteQualityClientProtocol,
    ) -> Result[int, str]:
        """Record new change events for every profile that has projects.

        Returns:
            Ok with the number of records added, or Err describing the failure.
        """
        try:
            added = 0
            for profile in await client.list_quality_profiles(instance_url):
                projects = await client.projects_for_profile(instance_url, profile.key)
                if not projects:
                    continue
                events = await client.profile_changes(instance_url, profile.key)
                added += await self._add_new_changes(collector, events)
            return Ok(added)
        except Exception as exc:
            return Err(f"Config change fetch failed for {instance_url}: {exc}")

    async def _add_new_changes(
        self, collector: CollectorProtocol, events: list[ChangeEvent]
    ) -> int:
        records: list[ConfigChangeRecord] = []
        seen: set[tuple[str, str, ConfigChangeOperation, int]] = set()
        for event in events:
            record = record_from_event(collector.id, event)
            if record.dedup_key in seen:
                continue
            seen.add(record.dedup_key)
            if await self._store.exists(
                record.collector_id, record.user_id, record.operation, record.timestamp
            ):
                continue
            records.append(record)
        await self._store.save_all(records)
        return len(records)
