"""Pydantic schemas for Vercel REST resources.

Only the fields the client relies on are declared; everything else the API
returns is kept as extra attributes so cached payloads round-trip intact.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class _Resource(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ── Pagination ───────────────────────────────────────────────


class Pagination(BaseModel):
    """Cursor block returned next to every list; ``next`` is None on the last page."""
    count: int = 0
    next: int | str | None = None
    prev: int | str | None = None


class Page(BaseModel, Generic[T]):
    items: list[T]
    pagination: Pagination = Field(default_factory=Pagination)

    @property
    def has_next(self) -> bool:
        return self.pagination.next is not None


# ── Projects ─────────────────────────────────────────────────


class Project(_Resource):
    id: str
    name: str
    account_id: str | None = Field(default=None, alias="accountId")
    created_at: int | None = Field(default=None, alias="createdAt")
    framework: str | None = None
    latest_deployments: list[Deployment] | None = Field(default=None, alias="latestDeployments")


# ── Deployments ──────────────────────────────────────────────


class DeploymentState(StrEnum):
    BUILDING = "BUILDING"
    ERROR = "ERROR"
    INITIALIZING = "INITIALIZING"
    QUEUED = "QUEUED"
    READY = "READY"
    CANCELED = "CANCELED"


class Creator(_Resource):
    uid: str
    email: str | None = None
    username: str | None = None


class Deployment(_Resource):
    uid: str
    name: str
    url: str | None = None
    created: int | None = None
    state: str | None = None
    creator: Creator | None = None
    meta: dict[str, Any] | None = None
    target: str | None = None


class DeploymentTarget(StrEnum):
    PRODUCTION = "production"
    PREVIEW = "preview"
    DEVELOPMENT = "development"


# ── Domains / DNS ────────────────────────────────────────────


class Domain(_Resource):
    id: str | None = None
    name: str
    verified: bool | None = None
    created_at: int | None = Field(default=None, alias="createdAt")
    expires_at: int | None = Field(default=None, alias="expiresAt")
    team_id: str | None = Field(default=None, alias="teamId")


class DNSRecord(_Resource):
    id: str
    name: str
    type: str
    value: str
    ttl: int | None = None


class DNSRecordCreate(BaseModel):
    name: str
    type: str
    value: str
    ttl: int | None = None


# ── Environment variables ────────────────────────────────────


class EnvVariableType(StrEnum):
    PLAIN = "plain"
    SECRET = "secret"
    ENCRYPTED = "encrypted"
    SYSTEM = "system"


class EnvVariable(_Resource):
    id: str | None = None
    key: str
    value: str | None = None
    type: str | None = None
    target: list[str] | str | None = None
    git_branch: str | None = Field(default=None, alias="gitBranch")
    created_at: int | None = Field(default=None, alias="createdAt")
    updated_at: int | None = Field(default=None, alias="updatedAt")


# ── Account ──────────────────────────────────────────────────


class Team(_Resource):
    id: str
    slug: str
    name: str | None = None
    created_at: int | None = Field(default=None, alias="createdAt")
    avatar: str | None = None


class User(_Resource):
    id: str | None = None
    uid: str | None = None
    email: str | None = None
    username: str | None = None
    name: str | None = None


Project.model_rebuild()
