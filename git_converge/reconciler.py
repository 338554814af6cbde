from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .errors import (
    ConvergenceVerificationFailed,
    IncompatibleShapeChange,
    OccupiedPath,
    RemoteMismatch,
    RevisionNotFound,
)
from .executor import ActionExecutor
from .gitcli import GitCli
from .models import (
    CurrentState,
    DesiredState,
    Ensure,
    ReconcileResult,
    ResolvedRevision,
    RevisionKind,
    Shape,
)
from .planner import plan
from .probe import StateProber
from .resolver import RevisionResolver
from .runner import CommandRunner

_LOGGER = logging.getLogger(__name__)

RunnerFactory = Callable[[str | None], CommandRunner]


class Reconciler:
    """Drives one managed path to its desired state per call."""

    def __init__(
        self,
        *,
        git_binary: str = "git",
        network_timeout: float | None = None,
        runner_factory: RunnerFactory = CommandRunner,
    ) -> None:
        self._git_binary = git_binary
        self._network_timeout = network_timeout
        self._runner_factory = runner_factory

    def git_for(self, desired: DesiredState) -> GitCli:
        return GitCli(
            self._runner_factory(desired.user),
            binary=self._git_binary,
            safe_directory=desired.path if desired.safe_directory or desired.owner else None,
            skip_hooks=desired.skip_hooks,
            identity=desired.identity,
            network_timeout=self._network_timeout,
        )

    def reconcile(self, desired: DesiredState, noop: bool = False) -> ReconcileResult:
        path = Path(desired.path)
        git = self.git_for(desired)
        prober = StateProber(git)
        resolver = RevisionResolver(git)

        current = prober.probe(path)
        _LOGGER.debug("%s: current shape %s, head %s", path, current.shape, current.head_commit)
        resolved = self._resolve(resolver, desired, current)
        actions = plan(desired, current, resolved)
        for notice in actions.notices:
            _LOGGER.warning("%s: %s", path, notice)

        dry_run = noop or desired.noop
        if actions.is_noop or dry_run:
            if dry_run and not actions.is_noop:
                _LOGGER.info("%s: noop, would run %s", path, ", ".join(actions.describe()))
            return self._result(desired, actions.describe(), list(actions.notices), current, current, False, dry_run)

        execution = ActionExecutor(git, path).execute(actions)
        after = self._verify(desired, prober, resolver, path)
        _LOGGER.info(
            "%s converged to ensure=%s @ %s",
            path,
            desired.ensure,
            after.head_commit[:7] if after.head_commit else "-",
        )
        return self._result(
            desired, execution.performed, list(actions.notices), current, after, execution.changed, False
        )

    @staticmethod
    def _resolve(
        resolver: RevisionResolver, desired: DesiredState, current: CurrentState
    ) -> ResolvedRevision | None:
        if not desired.tracks_revision:
            return None
        url = desired.remote_url
        shape = current.shape
        if shape is Shape.WORKING_COPY:
            if desired.ensure is Ensure.LATEST and url:
                resolved = resolver.resolve_remote(url, desired.revision)
                if resolved.kind is RevisionKind.SHA and resolved.commit is None:
                    # abbreviated id no remote ref points at
                    return _known_locally(resolver, desired) or resolved
                return resolved
            if desired.revision:
                try:
                    return resolver.resolve_local(Path(desired.path), desired.remote, desired.revision)
                except RevisionNotFound:
                    if not url:
                        raise
                    return resolver.resolve_remote(url, desired.revision)
            if current.head_commit is None and url:
                # unborn HEAD, e.g. an interrupted clone
                try:
                    return resolver.resolve_remote(url, None)
                except RevisionNotFound:
                    _LOGGER.debug("%s: remote %s has no commits yet", desired.path, url)
            return None
        if shape in (Shape.ABSENT, Shape.EMPTY) or desired.force:
            if desired.revision and url:
                return resolver.resolve_remote(url, desired.revision)
        return None

    def _verify(
        self,
        desired: DesiredState,
        prober: StateProber,
        resolver: RevisionResolver,
        path: Path,
    ) -> CurrentState:
        after = prober.probe(path)
        try:
            remaining = plan(desired, after, self._resolve(resolver, desired, after))
        except (OccupiedPath, IncompatibleShapeChange, RemoteMismatch, RevisionNotFound) as exc:
            raise ConvergenceVerificationFailed(
                f"state after execution does not match ensure={desired.ensure}: {exc.message}",
                path=str(path),
            ) from exc
        if not remaining.is_noop:
            raise ConvergenceVerificationFailed(
                f"still requires {', '.join(remaining.describe())} after execution",
                path=str(path),
            )
        return after

    @staticmethod
    def _result(
        desired: DesiredState,
        actions: list[str],
        notices: list[str],
        before: CurrentState,
        after: CurrentState,
        changed: bool,
        noop: bool,
    ) -> ReconcileResult:
        return ReconcileResult(
            path=desired.path,
            ensure=desired.ensure,
            changed=changed,
            noop=noop,
            actions=actions,
            notices=notices,
            commit_before=before.head_commit,
            commit_after=after.head_commit,
            reconciled_at=datetime.now(timezone.utc),
        )


def _known_locally(resolver: RevisionResolver, desired: DesiredState) -> ResolvedRevision | None:
    try:
        return resolver.resolve_local(Path(desired.path), desired.remote, desired.revision)
    except RevisionNotFound:
        return None
