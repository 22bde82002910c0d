"""Pydantic models for qualisync."""

from qualisync.models.collectors import Collector, CollectorKind
from qualisync.models.components import ComponentItemRef, DashboardComponent
from qualisync.models.config_history import ConfigChangeOperation, ConfigChangeRecord
from qualisync.models.cycles import CycleResult, ReconcileDelta
from qualisync.models.projects import Project, ProjectIdentity, ProjectSummary
from qualisync.models.quality import QualityMetric, QualitySnapshot
from qualisync.models.remote import ChangeEvent, ProfileDescriptor, RemoteProject

__all__ = [
    "ChangeEvent",
    "Collector",
    "CollectorKind",
    "ComponentItemRef",
    "ConfigChangeOperation",
    "ConfigChangeRecord",
    "CycleResult",
    "DashboardComponent",
    "ProfileDescriptor",
    "Project",
    "ProjectIdentity",
    "ProjectSummary",
    "QualityMetric",
    "QualitySnapshot",
    "ReconcileDelta",
    "RemoteProject",
]
