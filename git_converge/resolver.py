from __future__ import annotations

import logging
import re
from pathlib import Path

from .errors import RevisionNotFound
from .gitcli import GitCli
from .models import ResolvedRevision, RevisionKind

_LOGGER = logging.getLogger(__name__)

_FULL_ID = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")
_ABBREV_ID = re.compile(r"^[0-9a-f]{4,63}$")

HEADS = "refs/heads/"
TAGS = "refs/tags/"


def is_commit_id(token: str) -> bool:
    return bool(_FULL_ID.match(token.lower()))


def looks_like_commit(token: str) -> bool:
    return bool(_ABBREV_ID.match(token.lower()))


def parse_ls_remote(output: str) -> tuple[dict[str, str], dict[str, str]]:
    """Split ``git ls-remote --symref`` output into (refs, symrefs)."""
    refs: dict[str, str] = {}
    symrefs: dict[str, str] = {}
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        left, _, name = line.partition("\t")
        if left.startswith("ref: "):
            symrefs[name] = left[len("ref: "):].strip()
        else:
            refs[name] = left.strip()
    return refs, symrefs


def _short_name(token: str) -> str:
    for prefix in (HEADS, TAGS):
        if token.startswith(prefix):
            return token[len(prefix):]
    return token


class RevisionResolver:
    """Turns a revision token into a branch, tag or commit.

    When a name is both a branch and a tag the branch wins, on the remote and
    in the local object store alike.
    """

    def __init__(self, git: GitCli) -> None:
        self._git = git

    def resolve_remote(self, url: str, token: str | None) -> ResolvedRevision:
        output = self._git.output("ls-remote", "--symref", url, network=True)
        refs, symrefs = parse_ls_remote(output)
        if token is None:
            return self._default_branch(url, refs, symrefs)

        name = _short_name(token)
        _LOGGER.debug("Resolving %s against %d refs on %s", token, len(refs), url)
        if not token.startswith(TAGS) and HEADS + name in refs:
            return ResolvedRevision(token, RevisionKind.BRANCH, name, refs[HEADS + name])
        if not token.startswith(HEADS):
            peeled = refs.get(f"{TAGS}{name}^{{}}") or refs.get(TAGS + name)
            if peeled:
                return ResolvedRevision(token, RevisionKind.TAG, name, peeled)

        lowered = token.lower()
        if is_commit_id(lowered):
            return ResolvedRevision(token, RevisionKind.SHA, None, lowered)
        if looks_like_commit(lowered):
            matches = {sha for sha in refs.values() if sha.startswith(lowered)}
            commit = matches.pop() if len(matches) == 1 else None
            if commit is None:
                _LOGGER.debug("%s matches no single ref on %s", token, url)
            return ResolvedRevision(token, RevisionKind.SHA, None, commit)
        raise RevisionNotFound(f"Revision {token!r} not found on {url}")

    @staticmethod
    def _default_branch(
        url: str, refs: dict[str, str], symrefs: dict[str, str]
    ) -> ResolvedRevision:
        target = symrefs.get("HEAD")
        if target and target.startswith(HEADS) and target in refs:
            name = target[len(HEADS):]
            return ResolvedRevision(None, RevisionKind.BRANCH, name, refs[target])
        head = refs.get("HEAD")
        if head is None:
            raise RevisionNotFound(f"Remote {url} has no default branch")
        candidates = sorted(
            ref[len(HEADS):] for ref, sha in refs.items() if ref.startswith(HEADS) and sha == head
        )
        for preferred in ("main", "master"):
            if preferred in candidates:
                return ResolvedRevision(None, RevisionKind.BRANCH, preferred, head)
        if candidates:
            return ResolvedRevision(None, RevisionKind.BRANCH, candidates[0], head)
        return ResolvedRevision(None, RevisionKind.DETACHED, None, head)

    def resolve_local(self, path: Path, remote: str, token: str) -> ResolvedRevision:
        name = _short_name(token)
        if not token.startswith(TAGS):
            for ref in (f"{HEADS}{name}", f"refs/remotes/{remote}/{name}"):
                commit = self._commit_of(path, ref)
                if commit:
                    return ResolvedRevision(token, RevisionKind.BRANCH, name, commit)
        if not token.startswith(HEADS):
            commit = self._commit_of(path, TAGS + name)
            if commit:
                return ResolvedRevision(token, RevisionKind.TAG, name, commit)
        if looks_like_commit(token):
            commit = self._commit_of(path, token.lower())
            if commit:
                return ResolvedRevision(token, RevisionKind.SHA, None, commit)
        raise RevisionNotFound(f"Revision {token!r} not found in {path}")

    def _commit_of(self, path: Path, ref: str) -> str | None:
        return self._git.query("rev-parse", "--verify", "-q", f"{ref}^{{commit}}", cwd=path)
