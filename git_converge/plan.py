from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar


@dataclass(frozen=True)
class Action:
    network: ClassVar[bool] = False

    def describe(self) -> str:
        params = ", ".join(
            f"{key}={_format(value)}"
            for key, value in vars(self).items()
            if value not in (None, (), False)
        )
        return f"{type(self).__name__}({params})" if params else type(self).__name__


def _format(value: object) -> str:
    return repr(value.value) if isinstance(value, Enum) else repr(value)


@dataclass(frozen=True)
class RemoveAll(Action):
    pass


@dataclass(frozen=True)
class Clone(Action):
    network: ClassVar[bool] = True

    url: str
    remote: str = "origin"
    branch: str | None = None
    depth: int | None = None
    bare: bool = False
    mirror: bool = False
    submodules: bool = False


@dataclass(frozen=True)
class Init(Action):
    pass


@dataclass(frozen=True)
class InitBare(Action):
    pass


@dataclass(frozen=True)
class SetRemoteUrl(Action):
    name: str
    url: str


@dataclass(frozen=True)
class Fetch(Action):
    network: ClassVar[bool] = True

    remote: str
    branch: str | None = None
    depth: int | None = None
    prune: bool = False


@dataclass(frozen=True)
class Reset(Action):
    """Discard local modifications and untracked files."""


@dataclass(frozen=True)
class Checkout(Action):
    target: str
    kind: str
    branch: str | None = None
    remote: str = "origin"
    reset_branch: bool = False
    force: bool = False


@dataclass(frozen=True)
class UpdateSubmodules(Action):
    network: ClassVar[bool] = True


@dataclass(frozen=True)
class WriteExcludes(Action):
    lines: tuple[str, ...]


@dataclass(frozen=True)
class SetHooksPath(Action):
    path: str


@dataclass(frozen=True)
class UnsetHooksPath(Action):
    pass


@dataclass(frozen=True)
class AddSafeDirectory(Action):
    path: str


@dataclass(frozen=True)
class SetOwnership(Action):
    owner: str | None = None
    group: str | None = None


@dataclass(frozen=True)
class Plan:
    actions: tuple[Action, ...] = ()
    notices: tuple[str, ...] = field(default=(), compare=False)

    @property
    def is_noop(self) -> bool:
        return not self.actions

    def describe(self) -> list[str]:
        return [action.describe() for action in self.actions]
