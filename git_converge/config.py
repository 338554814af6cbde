from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, PositiveInt, ValidationError, model_validator

from .errors import ConfigurationError
from .models import DesiredState

OPTIONS_PATH = Path(os.getenv("GIT_CONVERGE_OPTIONS_FILE", "/etc/git-converge/options.yaml"))
LOCAL_DEV_OPTIONS = Path("./dev/options.yaml")
DEFAULT_HTTP_PORT = 7998


class Options(BaseModel):
    resources: list[DesiredState] = Field(default_factory=list)
    poll_interval: PositiveInt = 300
    network_timeout: PositiveInt | None = 600
    log_level: str = Field(default="info", pattern=r"^(debug|info|warning|error)$")
    http_api_port: int = Field(default=DEFAULT_HTTP_PORT, ge=0)
    oneshot: bool = False
    noop: bool = False
    git_binary: str = "git"

    @model_validator(mode="after")
    def _unique_paths(self) -> Options:
        seen: set[str] = set()
        for resource in self.resources:
            if resource.path in seen:
                raise ValueError(f"path {resource.path} is managed by more than one resource")
            seen.add(resource.path)
        return self

    def resource(self, path: str) -> DesiredState | None:
        wanted = os.path.abspath(os.path.expanduser(path))
        return next((item for item in self.resources if item.path == wanted), None)


def _parse(candidate: Path) -> dict[str, Any]:
    with candidate.open("r", encoding="utf-8") as handle:
        if candidate.suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(handle)
        else:
            data = json.load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{candidate} must contain a mapping at the top level")
    return data


def _load_raw_options(path: Path | None = None) -> dict[str, Any]:
    candidates = [path] if path else [OPTIONS_PATH, LOCAL_DEV_OPTIONS]
    for candidate in candidates:
        if candidate.exists():
            try:
                return _parse(candidate)
            except (yaml.YAMLError, json.JSONDecodeError) as exc:
                raise ConfigurationError(f"Cannot parse {candidate}: {exc}") from exc
    raise ConfigurationError(
        "No options file found. Provide "
        + " or ".join(str(candidate) for candidate in candidates)
    )


def load_options(path: Path | None = None) -> Options:
    raw = _load_raw_options(path)
    try:
        return Options(**raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid options: {exc}") from exc


def parse_resource(data: dict[str, Any]) -> DesiredState:
    try:
        return DesiredState(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid resource: {exc}") from exc
