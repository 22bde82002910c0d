"""Shapes returned by the remote analysis server."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RemoteProject(BaseModel):
    """One entry of a server's project inventory."""

    instance_url: str
    project_key: str
    project_id: str = ""
    name: str = ""


class ProfileDescriptor(BaseModel):
    """A quality profile reported by the server."""

    key: str
    name: str = ""
    language: str = ""


class ChangeEvent(BaseModel):
    """A quality-profile changelog event. Unknown fields are kept verbatim."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    action: str = ""
    date: str
    author_login: str = Field(default="", alias="authorLogin")
    author_name: str = Field(default="", alias="authorName")

    def raw(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)

    def epoch_millis(self) -> int:
        return parse_server_date(self.date)


SERVER_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def parse_server_date(value: str) -> int:
    """Parse a ``yyyy-MM-dd'T'HH:mm:ssZ`` server date into epoch milliseconds."""
    parsed = datetime.strptime(value.strip(), SERVER_DATE_FORMAT)
    return int(parsed.timestamp() * 1000)
