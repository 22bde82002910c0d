"""Thin async HTTP adapter for SonarQube-compatible analysis servers."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

import httpx

from qualisync.models.collectors import CollectorKind
from qualisync.models.quality import QualityMetric, QualitySnapshot
from qualisync.models.remote import (
    ChangeEvent,
    ProfileDescriptor,
    RemoteProject,
    parse_server_date,
)

if TYPE_CHECKING:
    from qualisync.config import Config
    from qualisync.models.projects import Project

logger = logging.getLogger(__name__)

MODERN_API_VERSION = 6.3
_PAGE_SIZE = 500
_VERSION_RE = re.compile(r"^\s*(\d+)(?:\.(\d+))?")


def parse_version(text: str) -> float:
    """Reduce a server version string such as ``6.7.1.35068`` to ``6.7``."""
    match = _VERSION_RE.match(text)
    if match is None:
        msg = f"Unrecognized server version: {text!r}"
        raise ValueError(msg)
    major, minor = match.group(1), match.group(2) or "0"
    return float(f"{major}.{minor}")


def _api_url(server_url: str, path: str) -> str:
    return f"{server_url.rstrip('/')}{path}"


class SonarClient:
    """Client for servers exposing the 6.3+ web API."""

    def __init__(self, http: httpx.AsyncClient, metrics: str) -> None:
        self._http = http
        self._metrics = metrics
        self._auth: httpx.Auth | None = None

    def set_credentials(
        self, username: str | None, password: str | None, token: str | None
    ) -> None:
        """Token wins over username/password; with neither, requests go anonymous."""
        if token:
            self._auth = httpx.BasicAuth(token, "")
        elif username:
            self._auth = httpx.BasicAuth(username, password or "")
        else:
            self._auth = None

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._http.get(url, params=params, auth=self._auth)
        response.raise_for_status()
        return response.json()

    async def list_projects(self, server_url: str) -> list[RemoteProject]:
        projects: list[RemoteProject] = []
        page = 1
        while True:
            data = await self._get_json(
                _api_url(server_url, "/api/components/search"),
                {"qualifiers": "TRK", "ps": _PAGE_SIZE, "p": page},
            )
            for component in data.get("components", []):
                projects.append(
                    RemoteProject(
                        instance_url=server_url,
                        project_key=str(component["key"]),
                        project_id=str(component.get("id") or component["key"]),
                        name=str(component.get("name") or ""),
                    )
                )
            paging = data.get("paging") or {}
            if page * int(paging.get("pageSize", _PAGE_SIZE)) >= int(paging.get("total", 0)):
                return projects
            page += 1

    async def fetch_quality(self, project: Project) -> QualitySnapshot | None:
        analyses = await self._get_json(
            _api_url(project.instance_url, "/api/project_analyses/search"),
            {"project": project.project_key, "ps": 1},
        )
        latest = next(iter(analyses.get("analyses", [])), None)
        if latest is None:
            return None
        measures = await self._get_json(
            _api_url(project.instance_url, "/api/measures/component"),
            {"component": project.project_key, "metricKeys": self._metrics},
        )
        component = measures.get("component") or {}
        version = ""
        for event in latest.get("events", []):
            if event.get("category") == "VERSION":
                version = str(event.get("name") or "")
        return QualitySnapshot(
            timestamp=parse_server_date(latest["date"]),
            name=str(component.get("name") or project.project_name),
            url=_api_url(project.instance_url, f"/dashboard?id={project.project_key}"),
            version=version,
            metrics=[
                _metric(m.get("metric"), m.get("value")) for m in component.get("measures", [])
            ],
        )

    async def list_quality_profiles(self, server_url: str) -> list[ProfileDescriptor]:
        data = await self._get_json(_api_url(server_url, "/api/qualityprofiles/search"))
        return [ProfileDescriptor.model_validate(p) for p in data.get("profiles", [])]

    async def projects_for_profile(self, server_url: str, profile_key: str) -> list[str] | None:
        data = await self._get_json(
            _api_url(server_url, "/api/qualityprofiles/projects"),
            {"key": profile_key, "ps": _PAGE_SIZE},
        )
        keys = [str(result["key"]) for result in data.get("results", [])]
        return keys or None

    async def profile_changes(self, server_url: str, profile_key: str) -> list[ChangeEvent]:
        data = await self._get_json(
            _api_url(server_url, "/api/qualityprofiles/changelog"),
            {"profileKey": profile_key, "ps": _PAGE_SIZE},
        )
        return [ChangeEvent.model_validate(event) for event in data.get("events", [])]


class LegacySonarClient(SonarClient):
    """Client for servers older than 6.3, which still serve ``/api/resources``."""

    async def list_projects(self, server_url: str) -> list[RemoteProject]:
        data = await self._get_json(_api_url(server_url, "/api/resources"), {"format": "json"})
        return [
            RemoteProject(
                instance_url=server_url,
                project_key=str(resource["key"]),
                project_id=str(resource.get("id") or resource["key"]),
                name=str(resource.get("name") or ""),
            )
            for resource in data
        ]

    async def fetch_quality(self, project: Project) -> QualitySnapshot | None:
        data = await self._get_json(
            _api_url(project.instance_url, "/api/resources"),
            {"format": "json", "resource": project.project_key, "metrics": self._metrics},
        )
        resource = next(iter(data), None)
        if resource is None or not resource.get("date"):
            return None
        return QualitySnapshot(
            timestamp=parse_server_date(resource["date"]),
            name=str(resource.get("name") or project.project_name),
            url=_api_url(project.instance_url, f"/dashboard/index/{resource.get('id', '')}"),
            version=str(resource.get("version") or ""),
            metrics=[
                _metric(m.get("key"), m.get("val"), m.get("frmt_val"))
                for m in resource.get("msr", [])
            ],
        )


class SonarClientSelector:
    """Resolves server versions and builds the matching client per collector kind."""

    def __init__(self, http: httpx.AsyncClient, config: Config) -> None:
        self._http = http
        self._config = config

    async def resolve_version(self, server_url: str) -> float:
        response = await self._http.get(_api_url(server_url, "/api/server/version"))
        response.raise_for_status()
        version = parse_version(response.text)
        logger.debug("Server %s reports version %s", server_url, version)
        return version

    def client_for(self, version: float, kind: CollectorKind) -> SonarClient:
        if version < MODERN_API_VERSION:
            return LegacySonarClient(self._http, self._config.legacy_metrics)
        if kind is CollectorKind.STATIC_SECURITY_SCAN:
            return SonarClient(self._http, self._config.security_metrics)
        return SonarClient(self._http, self._config.static_metrics)


def _metric(name: Any, value: Any, formatted: Any = None) -> QualityMetric:
    text = "" if value is None else str(value)
    return QualityMetric(
        name=str(name or ""),
        value=text,
        formatted_value=text if formatted is None else str(formatted),
        status=text if name == "alert_status" else "",
    )
