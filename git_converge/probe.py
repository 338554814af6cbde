from __future__ import annotations

import logging
from pathlib import Path

from .gitcli import GitCli
from .models import CurrentState
from .ownership import path_owner

_LOGGER = logging.getLogger(__name__)

METADATA_DIR = ".git"


def read_exclude_lines(git_dir: Path) -> list[str]:
    exclude_file = git_dir / "info" / "exclude"
    try:
        return exclude_file.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []


class StateProber:
    """Reads the current state of a managed path without changing it."""

    def __init__(self, git: GitCli, metadata_dir: str = METADATA_DIR) -> None:
        self._git = git
        self._metadata_dir = metadata_dir

    def probe(self, path: Path) -> CurrentState:
        safe_directories = self._safe_directories()
        if not path.exists() and not path.is_symlink():
            return CurrentState(path=str(path), safe_directories=safe_directories)
        owner, group = path_owner(path)
        base = {
            "path": str(path),
            "exists": True,
            "owner": owner,
            "group": group,
            "safe_directories": safe_directories,
        }
        if not path.is_dir():
            return CurrentState(**base)
        if not any(path.iterdir()):
            return CurrentState(**base, is_empty_dir=True)

        git_dir = self._git_dir(path)
        if git_dir is None:
            _LOGGER.debug("%s holds no readable repository", path)
            return CurrentState(**base)

        is_bare = git_dir == path.resolve()
        if is_bare and self._git.query("config", "--bool", "core.bare", cwd=path) != "true":
            return CurrentState(**base)

        head_ref = self._git.query("symbolic-ref", "-q", "HEAD", cwd=path) or "detached"
        head_commit = self._git.query("rev-parse", "--verify", "-q", "HEAD^{commit}", cwd=path)
        dirty = False
        if not is_bare:
            status = self._git.query("--no-optional-locks", "status", "--porcelain", cwd=path)
            dirty = bool(status)

        return CurrentState(
            **base,
            is_repo=True,
            is_bare=is_bare,
            is_mirror=self._is_mirror(path),
            is_shallow=(git_dir / "shallow").exists(),
            head_ref=head_ref,
            head_commit=head_commit or None,
            remotes=self._remotes(path),
            has_uncommitted_changes=dirty,
            excludes=read_exclude_lines(git_dir),
            hooks_path=self._git.query("config", "--local", "--get", "core.hooksPath", cwd=path),
        )

    def _git_dir(self, path: Path) -> Path | None:
        metadata = path / self._metadata_dir
        looks_bare = (path / "HEAD").is_file() and (path / "objects").is_dir()
        if not metadata.exists() and not looks_bare:
            return None
        reported = self._git.query("rev-parse", "--absolute-git-dir", cwd=path)
        if not reported:
            return None
        git_dir = Path(reported).resolve()
        resolved = path.resolve()
        if metadata.is_dir() and git_dir == metadata.resolve():
            return git_dir
        if metadata.is_file():
            # gitfile pointing at a separate git dir (worktrees, submodules)
            return git_dir
        if looks_bare and git_dir == resolved:
            return git_dir
        return None

    def _is_mirror(self, path: Path) -> bool:
        output = self._git.query("config", "--get-regexp", r"^remote\..*\.mirror$", cwd=path)
        if not output:
            return False
        return any(line.split()[-1].lower() == "true" for line in output.splitlines() if line.strip())

    def _remotes(self, path: Path) -> dict[str, str]:
        output = self._git.query("config", "--get-regexp", r"^remote\..*\.url$", cwd=path)
        remotes: dict[str, str] = {}
        for line in (output or "").splitlines():
            if not line.strip():
                continue
            key, _, url = line.partition(" ")
            name = key[len("remote."):-len(".url")]
            remotes[name] = url.strip()
        return remotes

    def _safe_directories(self) -> list[str]:
        output = self._git.query("config", "--global", "--get-all", "safe.directory")
        return [line.strip() for line in (output or "").splitlines() if line.strip()]
