"""Quality-profile configuration change audit models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ConfigChangeOperation(StrEnum):
    CREATED = "Created"
    DELETED = "Deleted"
    CHANGED = "Changed"


class ConfigChangeRecord(BaseModel):
    """Audit entry for one quality-profile change event."""

    collector_id: str
    user_name: str = ""
    user_id: str = ""
    operation: ConfigChangeOperation
    timestamp: int
    change_map: dict[str, Any] = Field(default_factory=dict)

    @property
    def dedup_key(self) -> tuple[str, str, ConfigChangeOperation, int]:
        return (self.collector_id, self.user_id, self.operation, self.timestamp)
