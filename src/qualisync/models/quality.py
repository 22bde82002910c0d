"""Quality snapshot models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class QualityMetric(BaseModel):
    """One metric value inside a snapshot."""

    name: str
    value: str = ""
    formatted_value: str = ""
    status: str = ""


class QualitySnapshot(BaseModel):
    """Immutable metric record owned by one project."""

    collector_item_id: str = ""
    timestamp: int
    name: str = ""
    url: str = ""
    version: str = ""
    metrics: list[QualityMetric] = Field(default_factory=list)
