from __future__ import annotations

from typing import Sequence


class ConfigurationError(RuntimeError):
    """Raised when options or a resource description cannot be validated."""


class ReconcileError(RuntimeError):
    """Base class for failures while converging a managed path."""

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        action: str | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.action = action
        self.stderr = stderr

    def attach(self, *, path: str | None = None, action: str | None = None) -> None:
        if path and not self.path:
            self.path = path
        if action and not self.action:
            self.action = action

    def __str__(self) -> str:
        parts = [self.message]
        if self.path:
            parts.append(f"path={self.path}")
        if self.action:
            parts.append(f"action={self.action}")
        text = " | ".join(parts)
        if self.stderr:
            text = f"{text}\n{self.stderr}"
        return text


class OccupiedPath(ReconcileError):
    """Path holds foreign content and force was not requested."""


class RevisionNotFound(ReconcileError):
    """Revision token matches no branch, tag or commit."""


class IncompatibleShapeChange(ReconcileError):
    """Switching between working copy, bare and mirror needs force."""


class RemoteMismatch(ReconcileError):
    """Configured remote points elsewhere and updating it is not allowed."""


class CommandExecutionFailure(ReconcileError):
    def __init__(
        self,
        argv: Sequence[str],
        exit_code: int,
        stderr: str,
        *,
        path: str | None = None,
    ) -> None:
        self.argv = list(argv)
        self.exit_code = exit_code
        super().__init__(
            f"Command {' '.join(self.argv)} failed with code {exit_code}",
            path=path,
            stderr=stderr,
        )


class AuthenticationFailure(CommandExecutionFailure):
    """Remote rejected the credentials; retrying will not help."""


class NetworkFailure(CommandExecutionFailure):
    """Transient transport failure, safe for the caller to retry."""

    retryable = True


class CommandTimeout(NetworkFailure):
    """Network-facing command did not finish within the configured timeout."""


class ConvergenceVerificationFailed(ReconcileError):
    """Post-execution state still differs from the desired state."""
