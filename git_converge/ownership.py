from __future__ import annotations

import grp
import logging
import os
import pwd
import shutil
from pathlib import Path

_LOGGER = logging.getLogger(__name__)


def path_owner(path: Path) -> tuple[str | None, str | None]:
    try:
        info = path.lstat()
    except OSError:
        return None, None
    return _user_name(info.st_uid), _group_name(info.st_gid)


def _user_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def chown_tree(path: Path, owner: str | None, group: str | None) -> None:
    if owner is None and group is None:
        return
    _LOGGER.info("Setting ownership of %s to %s:%s", path, owner or "-", group or "-")
    shutil.chown(path, user=owner, group=group)
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            target = os.path.join(root, name)
            if os.path.islink(target):
                os.lchown(target, _uid(owner), _gid(group))
            else:
                shutil.chown(target, user=owner, group=group)


def _uid(owner: str | None) -> int:
    return -1 if owner is None else pwd.getpwnam(owner).pw_uid


def _gid(group: str | None) -> int:
    return -1 if group is None else grp.getgrnam(group).gr_gid


def remove_tree(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    shutil.rmtree(path)
