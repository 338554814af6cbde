from __future__ import annotations

import getpass
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

import git

_LOGGER = logging.getLogger(__name__)

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)|\x1b[@-Z\\-_]")


def strip_ansi(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text)


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Runs external commands through GitPython's process layer.

    ``user`` switches the identity for every command this runner executes.
    Environment overrides are handed to the child process only and never
    written to ``os.environ``.
    """

    def __init__(self, user: str | None = None, timeout: float | None = None) -> None:
        self._user = user if user and user != getpass.getuser() else None
        self._timeout = timeout

    @property
    def user(self) -> str | None:
        return self._user

    def build_argv(
        self, argv: Sequence[str], env: Mapping[str, str] | None = None
    ) -> list[str]:
        if not self._user:
            return list(argv)
        prefix = ["sudo", "-n", "-u", self._user, "-H"]
        if env:
            prefix += ["env", *(f"{key}={value}" for key, value in sorted(env.items()))]
        return prefix + list(argv)

    def run(
        self,
        argv: Sequence[str],
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        command = self.build_argv(argv, env)
        limit = timeout if timeout is not None else self._timeout
        _LOGGER.debug("Running %s (cwd=%s)", " ".join(command), cwd)
        runner = git.Git(str(cwd) if cwd is not None else None)
        started = time.monotonic()
        try:
            status, stdout, stderr = runner.execute(
                command,
                with_extended_output=True,
                with_exceptions=False,
                env=dict(env) if env and not self._user else None,
                kill_after_timeout=limit,
            )
        except git.GitCommandNotFound as exc:
            return CommandResult(tuple(argv), 127, "", str(exc))
        elapsed = time.monotonic() - started
        stderr = strip_ansi(stderr or "")
        timed_out = bool(
            status != 0
            and limit is not None
            and (stderr.startswith("Timeout:") or elapsed >= limit)
        )
        return CommandResult(
            argv=tuple(argv),
            exit_code=status if status is not None else -1,
            stdout=strip_ansi(stdout or ""),
            stderr=stderr,
            timed_out=timed_out,
        )
