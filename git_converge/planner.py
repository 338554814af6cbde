from __future__ import annotations

from .errors import IncompatibleShapeChange, OccupiedPath, RemoteMismatch
from .gitcli import DISABLED_HOOKS_PATH
from .models import CurrentState, DesiredState, Ensure, ResolvedRevision, RevisionKind, Shape
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


def plan(
    desired: DesiredState,
    current: CurrentState,
    resolved: ResolvedRevision | None = None,
) -> Plan:
    """Compute the ordered actions that move ``current`` to ``desired``.

    Pure: the same inputs always give an equal plan, and nothing is touched.
    Raises OccupiedPath, IncompatibleShapeChange or RemoteMismatch when the
    path cannot be converged without an explicit ``force`` or remote update.
    """
    actions: list[Action] = []
    notices: list[str] = []
    target = desired.target_shape

    match (current.shape, desired.ensure):
        case (Shape.ABSENT, Ensure.ABSENT):
            pass
        case (_, Ensure.ABSENT):
            actions.append(RemoveAll())
        case (Shape.FOREIGN, _) if not desired.force:
            raise OccupiedPath(
                f"{desired.path} exists and is not a git repository; set force to replace it",
                path=desired.path,
            )
        case (Shape.FOREIGN, _):
            actions.append(RemoveAll())
            actions += _create(desired, current, resolved, notices)
        case (Shape.ABSENT | Shape.EMPTY, _):
            actions += _create(desired, current, resolved, notices)
        case (found, _) if found is not target and not desired.force:
            raise IncompatibleShapeChange(
                f"{desired.path} is a {found} repository but ensure={desired.ensure}; "
                "set force to recreate it",
                path=desired.path,
            )
        case (found, _) if found is not target:
            actions.append(RemoveAll())
            actions += _create(desired, current, resolved, notices)
        case (Shape.WORKING_COPY, _):
            actions += _converge_working_copy(desired, current, resolved, notices)
        case (Shape.BARE | Shape.MIRROR, _):
            actions += _sync_remotes(desired, current, prune=current.is_mirror)

    if desired.ensure is not Ensure.ABSENT and (desired.owner or desired.group):
        if actions or _ownership_drifted(desired, current):
            actions.append(SetOwnership(desired.owner, desired.group))

    return Plan(tuple(actions), tuple(notices))


def _create(
    desired: DesiredState,
    current: CurrentState,
    resolved: ResolvedRevision | None,
    notices: list[str],
) -> list[Action]:
    url = desired.remote_url
    actions: list[Action] = []
    if desired.ensure is Ensure.BARE and url is None:
        return [InitBare()]
    if desired.ensure in (Ensure.BARE, Ensure.MIRROR):
        actions.append(
            Clone(
                url,
                remote=desired.remote,
                bare=desired.ensure is Ensure.BARE,
                mirror=desired.ensure is Ensure.MIRROR,
            )
        )
        actions += _extra_remotes(desired)
        return actions

    if url is None:
        if desired.revision:
            notices.append(f"revision {desired.revision} ignored without a source")
        actions.append(Init())
    else:
        clone_branch = None
        if resolved is not None and resolved.kind in (RevisionKind.BRANCH, RevisionKind.TAG):
            clone_branch = resolved.name
        actions.append(
            Clone(
                url,
                remote=desired.remote,
                branch=clone_branch,
                depth=desired.depth,
                submodules=desired.submodules,
            )
        )
        if resolved is not None and resolved.kind is RevisionKind.SHA:
            actions.append(_checkout(desired, resolved))
            if desired.submodules:
                actions.append(UpdateSubmodules())
        actions += _extra_remotes(desired)
    fresh = CurrentState(path=desired.path, safe_directories=current.safe_directories)
    actions += _settings(desired, fresh, existing_excludes=[])
    return actions


def _converge_working_copy(
    desired: DesiredState,
    current: CurrentState,
    resolved: ResolvedRevision | None,
    notices: list[str],
) -> list[Action]:
    actions = _remote_updates(desired, current)
    remote_changed = any(
        isinstance(action, SetRemoteUrl) and action.name == desired.remote for action in actions
    )

    if desired.depth and not current.is_shallow:
        notices.append(
            f"depth={desired.depth} only applies when cloning; existing history is not truncated"
        )

    in_sync = resolved is None or _at_revision(current, resolved)
    if (remote_changed or not in_sync) and desired.remote_url:
        actions.append(
            Fetch(
                desired.remote,
                branch=resolved.name if resolved and resolved.kind is RevisionKind.BRANCH else None,
                depth=desired.depth if current.is_shallow else None,
            )
        )
    if not in_sync and resolved is not None:
        if desired.force and current.has_uncommitted_changes:
            actions.append(Reset())
        actions.append(_checkout(desired, resolved))
        if desired.submodules:
            actions.append(UpdateSubmodules())

    actions += _settings(desired, current, existing_excludes=current.excludes)
    return actions


def _sync_remotes(desired: DesiredState, current: CurrentState, prune: bool) -> list[Action]:
    actions = _remote_updates(desired, current)
    if any(isinstance(action, SetRemoteUrl) and action.name == desired.remote for action in actions):
        actions.append(Fetch(desired.remote, prune=prune))
    return actions


def _remote_updates(desired: DesiredState, current: CurrentState) -> list[Action]:
    actions: list[Action] = []
    for name, url in sorted(desired.remotes.items()):
        existing = current.remotes.get(name)
        if existing == url:
            continue
        if existing is not None and not desired.allow_remote_update:
            raise RemoteMismatch(
                f"remote {name} points at {existing}, expected {url}",
                path=desired.path,
            )
        actions.append(SetRemoteUrl(name, url))
    return actions


def _extra_remotes(desired: DesiredState) -> list[Action]:
    return [
        SetRemoteUrl(name, url)
        for name, url in sorted(desired.remotes.items())
        if name != desired.remote
    ]


def _at_revision(current: CurrentState, resolved: ResolvedRevision) -> bool:
    if resolved.commit is None or current.head_commit != resolved.commit:
        return False
    if resolved.kind is RevisionKind.BRANCH:
        return current.branch == resolved.name
    return True


def _checkout(desired: DesiredState, resolved: ResolvedRevision) -> Checkout:
    if resolved.kind is RevisionKind.BRANCH:
        return Checkout(
            target=resolved.name or resolved.target,
            kind=resolved.kind,
            branch=resolved.name,
            remote=desired.remote,
            reset_branch=desired.ensure is Ensure.LATEST,
            force=desired.force,
        )
    return Checkout(
        target=resolved.commit or resolved.token or resolved.target,
        kind=resolved.kind,
        remote=desired.remote,
        force=desired.force,
    )


def _settings(
    desired: DesiredState, current: CurrentState, existing_excludes: list[str]
) -> list[Action]:
    actions: list[Action] = []
    missing = [
        line for line in dict.fromkeys(desired.excludes) if line not in existing_excludes
    ]
    if missing:
        actions.append(WriteExcludes(tuple(missing)))
    if desired.skip_hooks and current.hooks_path != DISABLED_HOOKS_PATH:
        actions.append(SetHooksPath(DISABLED_HOOKS_PATH))
    elif not desired.skip_hooks and current.hooks_path == DISABLED_HOOKS_PATH:
        actions.append(UnsetHooksPath())
    if desired.safe_directory and not (
        desired.path in current.safe_directories or "*" in current.safe_directories
    ):
        actions.append(AddSafeDirectory(desired.path))
    return actions


def _ownership_drifted(desired: DesiredState, current: CurrentState) -> bool:
    if desired.owner and current.owner != desired.owner:
        return True
    return bool(desired.group and current.group != desired.group)
