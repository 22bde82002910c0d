"""Repository layer for SQL persistence and query access."""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from qualisync.models.collectors import Collector, CollectorKind
from qualisync.models.components import ComponentItemRef, DashboardComponent
from qualisync.models.config_history import ConfigChangeOperation, ConfigChangeRecord
from qualisync.models.projects import Project
from qualisync.models.quality import QualityMetric, QualitySnapshot

if TYPE_CHECKING:
    from qualisync.data.protocols import DatabaseProtocol


def _placeholders(values: list[Any]) -> str:
    return ",".join("?" for _ in values)


class CollectorRepository:
    """Registered collectors, one per kind."""

    def __init__(self, db: DatabaseProtocol) -> None:
        self._db = db

    async def register(self, name: str, kind: CollectorKind) -> str:
        """Return the collector id for ``name``, creating the row if needed."""
        existing = await self.find_by_name(name)
        if existing is not None:
            return existing.id
        await self._db.execute(
            """INSERT INTO collectors (collector_id, name, kind) VALUES (?, ?, ?)
               ON CONFLICT(name) DO NOTHING""",
            (uuid.uuid4().hex, name, str(kind)),
        )
        await self._db.commit()
        # A concurrent registration may have won the insert.
        registered = await self.find_by_name(name)
        if registered is None:
            msg = f"Collector {name!r} could not be registered"
            raise RuntimeError(msg)
        return registered.id

    async def find_by_name(self, name: str) -> Collector | None:
        row = await self._db.fetch_one("SELECT * FROM collectors WHERE name = ?", (name,))
        if row is None:
            return None
        return Collector(
            id=row["collector_id"],
            name=row["name"],
            kind=CollectorKind(row["kind"]),
            last_executed=int(row["last_executed"] or 0),
        )

    async def mark_executed(self, collector_id: str, timestamp: int) -> None:
        await self._db.execute(
            "UPDATE collectors SET last_executed = ? WHERE collector_id = ?",
            (timestamp, collector_id),
        )
        await self._db.commit()


class ProjectRepository:
    """Project (collector item) store."""

    def __init__(self, db: DatabaseProtocol) -> None:
        self._db = db

    async def find_by_collector_ids(self, collector_ids: Iterable[str]) -> list[Project]:
        ids = list(collector_ids)
        if not ids:
            return []
        rows = await self._db.fetch_all(
            f"SELECT * FROM projects WHERE collector_id IN ({_placeholders(ids)}) ORDER BY rowid",
            tuple(ids),
        )
        return [_row_to_project(row) for row in rows]

    async def find_enabled(self, collector_id: str, instance_url: str) -> list[Project]:
        rows = await self._db.fetch_all(
            """SELECT * FROM projects
               WHERE collector_id = ? AND instance_url = ? AND enabled = 1
               ORDER BY rowid""",
            (collector_id, instance_url),
        )
        return [_row_to_project(row) for row in rows]

    async def find_by_identity(
        self, collector_id: str, instance_url: str, project_key: str
    ) -> list[Project]:
        rows = await self._db.fetch_all(
            """SELECT * FROM projects
               WHERE collector_id = ? AND instance_url = ? AND project_key = ?
               ORDER BY rowid""",
            (collector_id, instance_url, project_key),
        )
        return [_row_to_project(row) for row in rows]

    async def get(self, item_id: str) -> Project | None:
        row = await self._db.fetch_one("SELECT * FROM projects WHERE id = ?", (item_id,))
        return _row_to_project(row) if row is not None else None

    async def list_all(self, collector_id: str = "", enabled_only: bool = False) -> list[Project]:
        conditions: list[str] = []
        params: list[str] = []
        if collector_id:
            conditions.append("collector_id = ?")
            params.append(collector_id)
        if enabled_only:
            conditions.append("enabled = 1")
        where = ""
        if conditions:
            where = "WHERE " + " AND ".join(conditions)
        rows = await self._db.fetch_all(
            f"SELECT * FROM projects {where} ORDER BY instance_url, project_key", tuple(params)
        )
        return [_row_to_project(row) for row in rows]

    async def save_all(self, projects: list[Project]) -> None:
        """Upsert ``projects`` in one batch."""
        if not projects:
            return
        await self._db.execute_many(
            """INSERT INTO projects
               (id, collector_id, instance_url, project_key, project_id, project_name,
                nice_name, description, enabled, pushed, last_updated)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   collector_id = excluded.collector_id,
                   instance_url = excluded.instance_url,
                   project_key = excluded.project_key,
                   project_id = excluded.project_id,
                   project_name = excluded.project_name,
                   nice_name = excluded.nice_name,
                   description = excluded.description,
                   enabled = excluded.enabled,
                   pushed = excluded.pushed,
                   last_updated = excluded.last_updated""",
            [
                (
                    p.id,
                    p.collector_id,
                    p.instance_url,
                    p.project_key,
                    p.project_id,
                    p.project_name,
                    p.nice_name,
                    p.description,
                    1 if p.enabled else 0,
                    1 if p.pushed else 0,
                    p.last_updated,
                )
                for p in projects
            ],
        )
        await self._db.commit()

    async def delete_all(self, projects: list[Project]) -> None:
        """Delete ``projects`` in one batch."""
        if not projects:
            return
        await self._db.execute_many(
            "DELETE FROM projects WHERE id = ?", [(p.id,) for p in projects]
        )
        await self._db.commit()


class ComponentRepository:
    """Dashboard component references, queryable by kind slot and item id."""

    def __init__(self, db: DatabaseProtocol) -> None:
        self._db = db

    async def referenced_item_ids(self, kind: CollectorKind, collector_id: str) -> set[str]:
        rows = await self._db.fetch_all(
            """SELECT DISTINCT collector_item_id FROM component_items
               WHERE kind = ? AND collector_id = ?""",
            (str(kind), collector_id),
        )
        return {str(row["collector_item_id"]) for row in rows}

    async def find_by_kind_and_item_ids(
        self, kind: CollectorKind, item_ids: list[str]
    ) -> list[DashboardComponent]:
        if not item_ids:
            return []
        rows = await self._db.fetch_all(
            f"""SELECT DISTINCT component_id FROM component_items
                WHERE kind = ? AND collector_item_id IN ({_placeholders(item_ids)})
                ORDER BY component_id""",
            (str(kind), *item_ids),
        )
        components: list[DashboardComponent] = []
        for row in rows:
            component = await self.get(str(row["component_id"]))
            if component is not None:
                components.append(component)
        return components

    async def get(self, component_id: str) -> DashboardComponent | None:
        row = await self._db.fetch_one(
            "SELECT * FROM components WHERE component_id = ?", (component_id,)
        )
        if row is None:
            return None
        item_rows = await self._db.fetch_all(
            """SELECT * FROM component_items
               WHERE component_id = ?
               ORDER BY kind, position""",
            (component_id,),
        )
        items: dict[str, list[ComponentItemRef]] = {}
        for item in item_rows:
            items.setdefault(str(item["kind"]), []).append(
                ComponentItemRef(
                    id=str(item["collector_item_id"]),
                    collector_id=str(item["collector_id"]),
                )
            )
        return DashboardComponent(
            id=str(row["component_id"]),
            name=str(row["name"] or ""),
            collector_items=items,
        )

    async def save_all(self, components: list[DashboardComponent]) -> None:
        """Replace the stored references of each component in one batch."""
        if not components:
            return
        await self._db.execute_many(
            """INSERT INTO components (component_id, name) VALUES (?, ?)
               ON CONFLICT(component_id) DO UPDATE SET name = excluded.name""",
            [(c.id, c.name) for c in components],
        )
        await self._db.execute_many(
            "DELETE FROM component_items WHERE component_id = ?",
            [(c.id,) for c in components],
        )
        item_rows: list[tuple[object, ...]] = []
        for component in components:
            for kind, refs in component.collector_items.items():
                for position, ref in enumerate(refs):
                    item_rows.append((component.id, kind, position, ref.id, ref.collector_id))
        if item_rows:
            await self._db.execute_many(
                """INSERT INTO component_items
                   (component_id, kind, position, collector_item_id, collector_id)
                   VALUES (?, ?, ?, ?, ?)""",
                item_rows,
            )
        await self._db.commit()


class QualitySnapshotRepository:
    """Append-only quality snapshot store."""

    def __init__(self, db: DatabaseProtocol) -> None:
        self._db = db

    async def latest_timestamp(self, collector_item_id: str) -> int | None:
        row = await self._db.fetch_one(
            """SELECT timestamp FROM quality_snapshots
               WHERE collector_item_id = ?
               ORDER BY timestamp DESC, id DESC
               LIMIT 1""",
            (collector_item_id,),
        )
        return int(row["timestamp"]) if row is not None else None

    async def latest(self, collector_item_id: str) -> QualitySnapshot | None:
        row = await self._db.fetch_one(
            """SELECT * FROM quality_snapshots
               WHERE collector_item_id = ?
               ORDER BY timestamp DESC, id DESC
               LIMIT 1""",
            (collector_item_id,),
        )
        if row is None:
            return None
        return QualitySnapshot(
            collector_item_id=str(row["collector_item_id"]),
            timestamp=int(row["timestamp"]),
            name=str(row["name"] or ""),
            url=str(row["url"] or ""),
            version=str(row["version"] or ""),
            metrics=[QualityMetric(**metric) for metric in json.loads(row["metrics_json"])],
        )

    async def append(self, snapshot: QualitySnapshot) -> None:
        await self._db.execute(
            """INSERT INTO quality_snapshots
               (collector_item_id, timestamp, name, url, version, metrics_json)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                snapshot.collector_item_id,
                snapshot.timestamp,
                snapshot.name,
                snapshot.url,
                snapshot.version,
                json.dumps([metric.model_dump() for metric in snapshot.metrics]),
            ),
        )
        await self._db.commit()


class ConfigChangeRepository:
    """Quality-profile configuration change audit store."""

    def __init__(self, db: DatabaseProtocol) -> None:
        self._db = db

    async def exists(
        self,
        collector_id: str,
        user_id: str,
        operation: ConfigChangeOperation,
        timestamp: int,
    ) -> bool:
        row = await self._db.fetch_one(
            """SELECT 1 FROM config_changes
               WHERE collector_id = ? AND user_id = ? AND operation = ? AND timestamp = ?
               LIMIT 1""",
            (collector_id, user_id, str(operation), timestamp),
        )
        return row is not None

    async def list_for_collector(self, collector_id: str) -> list[ConfigChangeRecord]:
        rows = await self._db.fetch_all(
            """SELECT * FROM config_changes
               WHERE collector_id = ?
               ORDER BY timestamp, id""",
            (collector_id,),
        )
        return [
            ConfigChangeRecord(
                collector_id=str(row["collector_id"]),
                user_name=str(row["user_name"] or ""),
                user_id=str(row["user_id"] or ""),
                operation=ConfigChangeOperation(row["operation"]),
                timestamp=int(row["timestamp"]),
                change_map=json.loads(row["change_json"]),
            )
            for row in rows
        ]

    async def save_all(self, records: list[ConfigChangeRecord]) -> None:
        if not records:
            return
        await self._db.execute_many(
            """INSERT INTO config_changes
               (collector_id, user_name, user_id, operation, timestamp, change_json)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [
                (
                    r.collector_id,
                    r.user_name,
                    r.user_id,
                    str(r.operation),
                    r.timestamp,
                    json.dumps(r.change_map, default=str),
                )
                for r in records
            ],
        )
        await self._db.commit()


def _row_to_project(row: Any) -> Project:
    r: dict[str, Any] = dict(row)
    return Project(
        id=str(r["id"]),
        collector_id=str(r["collector_id"]),
        instance_url=str(r["instance_url"]),
        project_key=str(r["project_key"]),
        project_id=str(r.get("project_id") or ""),
        project_name=str(r.get("project_name") or ""),
        nice_name=str(r.get("nice_name") or ""),
        description=str(r.get("description") or ""),
        enabled=bool(r.get("enabled")),
        pushed=bool(r.get("pushed")),
        last_updated=int(r.get("last_updated") or 0),
    )
