"""Project (collector item) models."""

from __future__ import annotations

import uuid
from typing import TypeAlias

from pydantic import BaseModel, Field

ProjectIdentity: TypeAlias = tuple[str, str, str]


class Project(BaseModel):
    """A remote project tracked under one collector on one server instance."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    collector_id: str
    instance_url: str
    project_key: str
    project_id: str = ""
    project_name: str = ""
    nice_name: str = ""
    description: str = ""
    enabled: bool = False
    pushed: bool = False
    last_updated: int = 0

    @property
    def identity(self) -> ProjectIdentity:
        return (self.collector_id, self.instance_url, self.project_key)


class ProjectSummary(BaseModel):
    """Project row joined with its latest snapshot timestamp, for listings."""

    id: str
    collector_id: str
    instance_url: str
    project_key: str
    nice_name: str = ""
    enabled: bool = False
    pushed: bool = False
    last_updated: int = 0
    latest_snapshot: int = 0
