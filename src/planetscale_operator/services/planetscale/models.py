"""Models for PlanetScale API responses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DATABASE_STATE_READY = "ready"


@dataclass
class Database:
    """A PlanetScale database."""

    name: str
    id: str = ""
    state: str = ""
    region: str | None = None
    notes: str = ""
    html_url: str | None = None
    created_at: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Database:
        region = data.get("region")
        if isinstance(region, dict):
            region = region.get("slug")
        return cls(
            name=data["name"],
            id=data.get("id", ""),
            state=data.get("state", ""),
            region=region,
            notes=data.get("notes") or "",
            html_url=data.get("html_url"),
            created_at=data.get("created_at"),
        )

    @property
    def ready(self) -> bool:
        return self.state == DATABASE_STATE_READY


@dataclass
class Password:
    """A PlanetScale database branch password.

    ``plain_text`` is only present in the response to a create request.
    """

    id: str
    name: str
    role: str | None = None
    username: str | None = None
    access_host_url: str | None = None
    plain_text: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Password:
        branch = data.get("database_branch") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            role=data.get("role"),
            username=data.get("username"),
            access_host_url=data.get("access_host_url") or branch.get("access_host_url"),
            plain_text=data.get("plain_text"),
        )

    def __repr__(self) -> str:
        return f"Password(id={self.id!r}, name={self.name!r}, role={self.role!r})"
