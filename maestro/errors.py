"""Error taxonomy for maestro orchestration runs.

- `CircularDependencyError`: raised while resolving the feature graph; nothing has been created yet.
- `OrchestrationError`: raised by `MaestroOrchestrator.run` after rollback has completed. It names the
  stage the failure happened in, keeps the underlying exception as `cause`, and carries any rollback
  step failures in `rollback_errors` as supplementary diagnostics.
  - `ProvisioningError`: a worktree could not be created.
  - `SessionBuildError`: a tmux command (or the context write that follows it) failed.
- `PersistenceWarning`: the state document could not be written after a successful run. It is a
  `Warning`, reported on the run result, and never raised by the orchestrator.

External command failures are plain `subprocess.CalledProcessError`s; their captured stderr is copied
verbatim into the orchestration error message so operators see what git/tmux actually said.
"""

from __future__ import annotations

import subprocess
from pathlib import Path


class MaestroError(Exception):
    """Base class for errors the CLI reports without a stack trace."""


class CircularDependencyError(MaestroError):
    def __init__(self, cycle: list[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.cycle)}")


def describe_failure(exc: BaseException) -> str:
    """Render an exception for operators, including the command's stderr when there is one."""
    if isinstance(exc, subprocess.CalledProcessError):
        cmd = exc.cmd if isinstance(exc.cmd, str) else " ".join(str(c) for c in exc.cmd)
        stderr = exc.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        msg = f"`{cmd}` exited {exc.returncode}"
        if stderr and stderr.strip():
            msg += f": {stderr.strip()}"
        return msg
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


class OrchestrationError(MaestroError):
    def __init__(self, message: str, *, stage: str, cause: BaseException | None = None) -> None:
        self.stage = stage
        self.cause = cause
        self.rollback_errors: list[str] = []
        super().__init__(message)

    def __str__(self) -> str:
        text = f"[{self.stage}] {self.args[0]}"
        if self.cause is not None:
            text += f" ({describe_failure(self.cause)})"
        if self.rollback_errors:
            text += "\nrollback problems:\n" + "\n".join(f"  - {e}" for e in self.rollback_errors)
        return text


class ProvisioningError(OrchestrationError):
    def __init__(self, message: str, *, feature: str | None = None, cause: BaseException | None = None) -> None:
        self.feature = feature
        super().__init__(message, stage="provisioning", cause=cause)


class SessionBuildError(OrchestrationError):
    def __init__(self, message: str, *, session: str | None = None, cause: BaseException | None = None) -> None:
        self.session = session
        super().__init__(message, stage="session_building", cause=cause)


class PersistenceWarning(UserWarning):
    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(
            f"Workspaces and sessions were created, but the state file {path} could not be written: "
            f"{describe_failure(cause)}"
        )
