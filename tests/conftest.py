"""Shared fixtures: an isolated git environment and a local upstream repository."""

from __future__ import annotations

from pathlib import Path

import pytest
from git import Repo

from git_converge.reconciler import Reconciler


class Upstream:
    """A bare repository fed from a scratch working copy.

    Layout after construction:
      main      first -> second (tagged 0.0.1 lightweight, 0.0.2 annotated)
      a_branch  second -> third
      dup       branch at third, tag at first
    """

    def __init__(self, root: Path) -> None:
        self.bare_path = root / "upstream.git"
        Repo.init(self.bare_path, bare=True, initial_branch="main")
        self.work = Repo.init(root / "upstream-work", initial_branch="main")
        self.work.create_remote("origin", str(self.bare_path))

        self.first = self.commit("README.md", "hello\n", "Initial commit")
        self.work.git.tag("0.0.1")
        self.second = self.commit("README.md", "hello again\n", "Second commit")
        self.work.git.tag("-a", "0.0.2", "-m", "Release 0.0.2")

        self.work.git.checkout("-b", "a_branch")
        self.third = self.commit("feature.txt", "feature\n", "Add feature")
        self.work.git.checkout("main")
        self.work.git.branch("dup", self.third)
        self.work.git.tag("dup", self.first)

        self.work.git.push("origin", "--all")
        self.work.git.push("origin", "--tags")

    @property
    def url(self) -> str:
        return self.bare_path.as_uri()

    def commit(self, name: str, content: str, message: str) -> str:
        (Path(self.work.working_dir) / name).write_text(content)
        self.work.git.add(name)
        self.work.git.commit("-m", message)
        return self.work.head.commit.hexsha

    def advance(self, branch: str = "main") -> str:
        self.work.git.checkout(branch)
        sha = self.commit(f"{branch}.log", f"{branch} moved\n", f"Advance {branch}")
        self.work.git.push("origin", f"refs/heads/{branch}:refs/heads/{branch}")
        self.work.git.checkout("main")
        return sha


@pytest.fixture(autouse=True)
def isolated_git(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE", "GIT_SSH_COMMAND"):
        monkeypatch.delenv(var, raising=False)
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Converge Tests")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "tests@example.invalid")
    return home


@pytest.fixture
def upstream(tmp_path) -> Upstream:
    return Upstream(tmp_path / "remote")


@pytest.fixture
def reconciler() -> Reconciler:
    return Reconciler(network_timeout=120)


@pytest.fixture
def target(tmp_path) -> Path:
    return tmp_path / "checkouts" / "testrepo"
