from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Iterable

from .errors import (
    AuthenticationFailure,
    CommandExecutionFailure,
    CommandTimeout,
    NetworkFailure,
)
from .runner import CommandResult, CommandRunner

_LOGGER = logging.getLogger(__name__)

DISABLED_HOOKS_PATH = "/dev/null"

_AUTH_MARKERS = (
    "authentication failed",
    "permission denied (publickey",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "host key verification failed",
    "http basic: access denied",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
    "invalid username or password",
)

_NETWORK_MARKERS = (
    "could not resolve host",
    "could not resolve hostname",
    "connection timed out",
    "connection refused",
    "connection reset",
    "network is unreachable",
    "operation timed out",
    "the remote end hung up unexpectedly",
    "early eof",
    "unable to access",
    "failed to connect",
    "ssl_error",
    "gnutls_handshake",
    "temporary failure in name resolution",
)


def classify_failure(result: CommandResult, network: bool, cwd: Path | None) -> CommandExecutionFailure:
    path = str(cwd) if cwd else None
    if result.timed_out:
        return CommandTimeout(result.argv, result.exit_code, result.stderr, path=path)
    if network:
        lowered = result.stderr.lower()
        if any(marker in lowered for marker in _AUTH_MARKERS):
            return AuthenticationFailure(result.argv, result.exit_code, result.stderr, path=path)
        if any(marker in lowered for marker in _NETWORK_MARKERS):
            return NetworkFailure(result.argv, result.exit_code, result.stderr, path=path)
    return CommandExecutionFailure(result.argv, result.exit_code, result.stderr, path=path)


class GitCli:
    """Builds git invocations for one managed path.

    Per-invocation ``-c`` overrides keep the user's and the repository's
    configuration untouched; credentials only reach network commands.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        binary: str = "git",
        safe_directory: str | None = None,
        skip_hooks: bool = False,
        identity: str | None = None,
        network_timeout: float | None = None,
    ) -> None:
        self.runner = runner
        self._binary = binary
        self._safe_directory = safe_directory
        self._skip_hooks = skip_hooks
        self._identity = identity
        self._network_timeout = network_timeout

    def argv(self, args: Iterable[str]) -> list[str]:
        command = [self._binary, "-c", "color.ui=never"]
        if self._safe_directory:
            command += ["-c", f"safe.directory={self._safe_directory}"]
        if self._skip_hooks:
            command += ["-c", f"core.hooksPath={DISABLED_HOOKS_PATH}"]
        return command + list(args)

    def network_env(self) -> dict[str, str]:
        env = {"GIT_TERMINAL_PROMPT": "0"}
        if self._identity:
            env["GIT_SSH_COMMAND"] = (
                f"ssh -i {shlex.quote(self._identity)} -o IdentitiesOnly=yes -o BatchMode=yes"
            )
        return env

    def run(
        self,
        *args: str,
        cwd: Path | None = None,
        network: bool = False,
        check: bool = True,
    ) -> CommandResult:
        env = self.network_env() if network else None
        timeout = self._network_timeout if network else None
        result = self.runner.run(self.argv(args), cwd=cwd, env=env, timeout=timeout)
        if check and not result.ok:
            error = classify_failure(result, network, cwd)
            _LOGGER.debug(
                "%s exited %s: %s", " ".join(result.argv), result.exit_code, type(error).__name__
            )
            raise error
        return result

    def output(self, *args: str, cwd: Path | None = None, network: bool = False) -> str:
        return self.run(*args, cwd=cwd, network=network).stdout.strip()

    def query(self, *args: str, cwd: Path | None = None) -> str | None:
        """Run a read-only command, returning None instead of raising on non-zero exit."""
        result = self.run(*args, cwd=cwd, check=False)
        if not result.ok:
            return None
        return result.stdout.strip()
