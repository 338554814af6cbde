from __future__ import annotations

from pathlib import Path

from git import Repo

from git_converge.gitcli import GitCli
from git_converge.models import Shape
from git_converge.probe import StateProber
from git_converge.runner import CommandRunner


def make_prober() -> StateProber:
    return StateProber(GitCli(CommandRunner()))


def test_missing_path(tmp_path):
    state = make_prober().probe(tmp_path / "missing")

    assert state.exists is False
    assert state.shape is Shape.ABSENT


def test_empty_directory(tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()

    state = make_prober().probe(empty)

    assert state.is_empty_dir is True
    assert state.shape is Shape.EMPTY


def test_directory_with_foreign_content(tmp_path):
    occupied = tmp_path / "occupied"
    occupied.mkdir()
    (occupied / "notes.txt").write_text("mine")

    state = make_prober().probe(occupied)

    assert state.is_repo is False
    assert state.is_empty_dir is False
    assert state.shape is Shape.FOREIGN


def test_regular_file_is_foreign(tmp_path):
    occupied = tmp_path / "file"
    occupied.write_text("")

    assert make_prober().probe(occupied).shape is Shape.FOREIGN


def test_subdirectory_of_a_repository_is_foreign(upstream):
    nested = Path(upstream.work.working_dir) / "nested"
    nested.mkdir()
    (nested / "file").write_text("x")

    assert make_prober().probe(nested).shape is Shape.FOREIGN


def test_working_copy(upstream, tmp_path):
    Repo.clone_from(upstream.url, tmp_path / "clone")

    state = make_prober().probe(tmp_path / "clone")

    assert state.shape is Shape.WORKING_COPY
    assert state.head_ref == "refs/heads/main"
    assert state.branch == "main"
    assert state.head_commit == upstream.second
    assert state.remotes == {"origin": upstream.url}
    assert state.has_uncommitted_changes is False
    assert state.is_shallow is False
    assert state.hooks_path is None


def test_detached_dirty_working_copy(upstream, tmp_path):
    clone = Repo.clone_from(upstream.url, tmp_path / "clone")
    clone.git.checkout("--detach", upstream.first)
    (tmp_path / "clone" / "README.md").write_text("changed\n")

    state = make_prober().probe(tmp_path / "clone")

    assert state.head_ref == "detached"
    assert state.branch is None
    assert state.head_commit == upstream.first
    assert state.has_uncommitted_changes is True


def test_unborn_repository(tmp_path):
    Repo.init(tmp_path / "fresh")

    state = make_prober().probe(tmp_path / "fresh")

    assert state.shape is Shape.WORKING_COPY
    assert state.head_commit is None


def test_bare_and_mirror(upstream, tmp_path):
    Repo(upstream.bare_path).git.clone("--mirror", upstream.url, str(tmp_path / "mirror"))

    bare = make_prober().probe(upstream.bare_path)
    mirror = make_prober().probe(tmp_path / "mirror")

    assert bare.shape is Shape.BARE
    assert bare.head_commit == upstream.second
    assert mirror.shape is Shape.MIRROR
    assert mirror.remotes == {"origin": upstream.url}


def test_probe_reads_exclude_lines_and_hooks(upstream, tmp_path):
    clone = Repo.clone_from(upstream.url, tmp_path / "clone")
    info = tmp_path / "clone" / ".git" / "info"
    info.mkdir(exist_ok=True)
    (info / "exclude").write_text("one\ntwo\n")
    clone.git.config("--local", "core.hooksPath", "/dev/null")

    state = make_prober().probe(tmp_path / "clone")

    assert state.excludes == ["one", "two"]
    assert state.hooks_path == "/dev/null"
