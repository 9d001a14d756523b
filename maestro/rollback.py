"""Rollback ledger for orchestration runs.

Each step that creates an external resource (a worktree, a tmux session) records an undo action as
soon as the resource exists. If the run fails, `rollback()` replays the undo actions newest-first, so
sessions are killed before the worktree they run in is removed. Undo failures are logged and
collected, never raised: the caller attaches them to the original error instead.
"""

from __future__ import annotations

import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .errors import describe_failure

UndoAction = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class LedgerEntry:
    kind: str
    target: str
    undo: UndoAction


class RollbackLedger:
    def __init__(self) -> None:
        self._entries: list[LedgerEntry] = []

    def record(self, kind: str, target: str, undo: UndoAction) -> None:
        self._entries.append(LedgerEntry(kind=kind, target=target, undo=undo))

    @property
    def entries(self) -> list[LedgerEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    async def rollback(self) -> list[str]:
        """Undo everything recorded so far; return descriptions of undo steps that failed."""
        failures: list[str] = []
        while self._entries:
            entry = self._entries.pop()
            print(f"[maestro] rollback: removing {entry.kind} {entry.target}", file=sys.stderr)
            try:
                await entry.undo()
            except Exception as exc:
                msg = f"could not remove {entry.kind} {entry.target}: {describe_failure(exc)}"
                print(f"[maestro] rollback failed: {msg}", file=sys.stderr)
                failures.append(msg)
        return failures
