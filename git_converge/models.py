from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator

_LOGGER = logging.getLogger(__name__)

DEFAULT_REMOTE = "origin"


class Ensure(StrEnum):
    ABSENT = "absent"
    PRESENT = "present"
    LATEST = "latest"
    BARE = "bare"
    MIRROR = "mirror"


class Shape(StrEnum):
    ABSENT = "absent"
    EMPTY = "empty"
    FOREIGN = "foreign"
    WORKING_COPY = "working_copy"
    BARE = "bare"
    MIRROR = "mirror"


class RevisionKind(StrEnum):
    BRANCH = "branch"
    TAG = "tag"
    SHA = "sha"
    DETACHED = "detached"


class DesiredState(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    ensure: Ensure = Ensure.PRESENT
    source: str | dict[str, str] | None = None
    revision: str | None = None
    depth: PositiveInt | None = None
    remote: str = DEFAULT_REMOTE
    excludes: list[str] = Field(default_factory=list)
    owner: str | None = None
    group: str | None = None
    user: str | None = None
    identity: str | None = None
    skip_hooks: bool = False
    force: bool = False
    safe_directory: bool = False
    submodules: bool = True
    noop: bool = False
    allow_remote_update: bool = True

    @field_validator("path")
    @classmethod
    def _absolute_path(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("path must not be empty")
        return os.path.abspath(os.path.expanduser(value))

    @field_validator("revision")
    @classmethod
    def _blank_revision(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _check_source(self) -> DesiredState:
        if isinstance(self.source, dict):
            if not self.source:
                raise ValueError("source mapping must name at least one remote")
            if self.remote not in self.source:
                raise ValueError(
                    f"source mapping has no entry for remote {self.remote!r}"
                )
        if self.ensure is Ensure.MIRROR and not self.source:
            raise ValueError("ensure=mirror requires a source")
        if self.ensure in (Ensure.BARE, Ensure.MIRROR) and self.revision:
            _LOGGER.warning("revision %s ignored for ensure=%s", self.revision, self.ensure)
        return self

    @property
    def remotes(self) -> dict[str, str]:
        if self.source is None:
            return {}
        if isinstance(self.source, str):
            return {self.remote: self.source}
        return dict(self.source)

    @property
    def remote_url(self) -> str | None:
        return self.remotes.get(self.remote)

    @property
    def target_shape(self) -> Shape | None:
        return {
            Ensure.PRESENT: Shape.WORKING_COPY,
            Ensure.LATEST: Shape.WORKING_COPY,
            Ensure.BARE: Shape.BARE,
            Ensure.MIRROR: Shape.MIRROR,
        }.get(self.ensure)

    @property
    def tracks_revision(self) -> bool:
        return self.ensure in (Ensure.PRESENT, Ensure.LATEST)


class CurrentState(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    exists: bool = False
    is_repo: bool = False
    is_bare: bool = False
    is_mirror: bool = False
    is_empty_dir: bool = False
    is_shallow: bool = False
    head_ref: str | None = None
    head_commit: str | None = None
    remotes: dict[str, str] = Field(default_factory=dict)
    has_uncommitted_changes: bool = False
    excludes: list[str] = Field(default_factory=list)
    hooks_path: str | None = None
    owner: str | None = None
    group: str | None = None
    safe_directories: list[str] = Field(default_factory=list)

    @property
    def shape(self) -> Shape:
        if not self.exists:
            return Shape.ABSENT
        if not self.is_repo:
            return Shape.EMPTY if self.is_empty_dir else Shape.FOREIGN
        if self.is_mirror:
            return Shape.MIRROR
        if self.is_bare:
            return Shape.BARE
        return Shape.WORKING_COPY

    @property
    def branch(self) -> str | None:
        if self.head_ref and self.head_ref.startswith("refs/heads/"):
            return self.head_ref[len("refs/heads/"):]
        return None


@dataclass(frozen=True)
class ResolvedRevision:
    token: str | None
    kind: RevisionKind
    name: str | None = None
    commit: str | None = None

    @property
    def target(self) -> str:
        return self.commit or self.name or self.token or "HEAD"


class ReconcileResult(BaseModel):
    path: str
    ensure: Ensure
    changed: bool
    noop: bool = False
    actions: list[str] = Field(default_factory=list)
    notices: list[str] = Field(default_factory=list)
    commit_before: str | None = None
    commit_after: str | None = None
    reconciled_at: datetime


class ResourceStatus(BaseModel):
    path: str
    healthy: bool
    last_result: ReconcileResult | None = None
    error: str | None = None
    retryable: bool | None = None


class StatusResponse(BaseModel):
    healthy: bool
    pending_reason: str | None = None
    resources: list[ResourceStatus] = Field(default_factory=list)
