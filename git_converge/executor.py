from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ReconcileError, RevisionNotFound
from .gitcli import GitCli
from .models import RevisionKind
from .ownership import chown_tree, remove_tree
from .plan import (
    Action,
    AddSafeDirectory,
    Checkout,
    Clone,
    Fetch,
    Init,
    InitBare,
    Plan,
    RemoveAll,
    Reset,
    SetHooksPath,
    SetOwnership,
    SetRemoteUrl,
    UnsetHooksPath,
    UpdateSubmodules,
    WriteExcludes,
)
from .probe import METADATA_DIR, read_exclude_lines

_LOGGER = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    changed: bool = False
    performed: list[str] = field(default_factory=list)


class ActionExecutor:
    """Applies plan actions to one managed path, strictly in order."""

    def __init__(self, git: GitCli, path: Path) -> None:
        self._git = git
        self._path = path

    def execute(self, plan: Plan) -> ExecutionResult:
        result = ExecutionResult()
        for action in plan.actions:
            description = action.describe()
            _LOGGER.info("%s: %s", self._path, description)
            try:
                self._apply(action)
            except ReconcileError as exc:
                exc.attach(path=str(self._path), action=description)
                raise
            except (OSError, LookupError) as exc:
                raise ReconcileError(
                    f"{description} failed: {exc}", path=str(self._path), action=description
                ) from exc
            result.changed = True
            result.performed.append(description)
        return result

    def _apply(self, action: Action) -> None:
        match action:
            case RemoveAll():
                remove_tree(self._path)
            case Clone():
                self._clone(action)
            case Init():
                self._path.mkdir(parents=True, exist_ok=True)
                self._git.run("init", "-q", str(self._path), cwd=self._path.parent)
            case InitBare():
                self._path.mkdir(parents=True, exist_ok=True)
                self._git.run("init", "-q", "--bare", str(self._path), cwd=self._path.parent)
            case SetRemoteUrl(name=name, url=url):
                self._set_remote(name, url)
            case Fetch():
                self._fetch(action)
            case Reset():
                self._git.run("reset", "-q", "--hard", cwd=self._path)
                self._git.run("clean", "-q", "-f", "-d", cwd=self._path)
            case Checkout():
                self._checkout(action)
            case UpdateSubmodules():
                if (self._path / ".gitmodules").exists():
                    self._git.run(
                        "submodule", "update", "--init", "--recursive", cwd=self._path, network=True
                    )
            case WriteExcludes(lines=lines):
                self._write_excludes(lines)
            case SetHooksPath(path=hooks_path):
                self._git.run("config", "--local", "core.hooksPath", hooks_path, cwd=self._path)
            case UnsetHooksPath():
                self._git.run("config", "--local", "--unset", "core.hooksPath", cwd=self._path)
            case AddSafeDirectory(path=safe_path):
                self._git.run("config", "--global", "--add", "safe.directory", safe_path)
            case SetOwnership(owner=owner, group=group):
                chown_tree(self._path, owner, group)
            case _:
                raise TypeError(f"Unsupported action {action!r}")

    def _clone(self, action: Clone) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        args = ["clone", "-q"]
        if action.mirror:
            args.append("--mirror")
        elif action.bare:
            args.append("--bare")
        else:
            args += ["--origin", action.remote]
            if action.submodules:
                args.append("--recurse-submodules")
        if action.branch:
            args += ["--branch", action.branch]
        if action.depth:
            args += ["--depth", str(action.depth)]
        _LOGGER.info("Cloning %s into %s", action.url, self._path)
        self._git.run(*args, action.url, str(self._path), cwd=self._path.parent, network=True)
        if (action.bare or action.mirror) and action.remote != "origin":
            self._git.run("remote", "rename", "origin", action.remote, cwd=self._path)

    def _set_remote(self, name: str, url: str) -> None:
        existing = self._git.query("config", "--get", f"remote.{name}.url", cwd=self._path)
        if existing is None:
            self._git.run("remote", "add", name, url, cwd=self._path)
        else:
            self._git.run("remote", "set-url", name, url, cwd=self._path)

    def _fetch(self, action: Fetch) -> None:
        args = ["fetch", "-q", "--tags"]
        if action.prune:
            args.append("--prune")
        if action.depth:
            args += ["--depth", str(action.depth)]
        args.append(action.remote)
        if action.branch:
            args.append(f"+refs/heads/{action.branch}:refs/remotes/{action.remote}/{action.branch}")
        self._git.run(*args, cwd=self._path, network=True)

    def _checkout(self, action: Checkout) -> None:
        force = ["--force"] if action.force else []
        if action.kind == RevisionKind.BRANCH and action.branch:
            tracking = f"refs/remotes/{action.remote}/{action.branch}"
            has_tracking = self._verify(tracking) is not None
            has_local = self._verify(f"refs/heads/{action.branch}") is not None
            if has_tracking and (action.reset_branch or not has_local):
                self._git.run(
                    "checkout", "-q", *force, "--track", "-B", action.branch,
                    f"{action.remote}/{action.branch}",
                    cwd=self._path,
                )
            elif has_local:
                self._git.run("checkout", "-q", *force, action.branch, cwd=self._path)
            else:
                raise RevisionNotFound(f"Branch {action.branch!r} not found after fetch")
            return
        commit = self._verify(action.target)
        if commit is None:
            raise RevisionNotFound(f"Revision {action.target!r} not found after fetch")
        self._git.run("checkout", "-q", *force, "--detach", commit, cwd=self._path)

    def _verify(self, ref: str) -> str | None:
        return self._git.query("rev-parse", "--verify", "-q", f"{ref}^{{commit}}", cwd=self._path)

    def _write_excludes(self, lines: tuple[str, ...]) -> None:
        info_dir = self._path / METADATA_DIR / "info"
        info_dir.mkdir(parents=True, exist_ok=True)
        exclude_file = info_dir / "exclude"
        existing = read_exclude_lines(info_dir.parent)
        missing = [line for line in lines if line not in existing]
        if not missing:
            return
        content = exclude_file.read_text(encoding="utf-8") if exclude_file.exists() else ""
        with exclude_file.open("a", encoding="utf-8") as handle:
            if content and not content.endswith("\n"):
                handle.write("\n")
            handle.write("".join(f"{line}\n" for line in missing))
