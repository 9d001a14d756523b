"""tmux client for maestro session orchestration.

`TmuxClient` wraps the handful of tmux commands the orchestrator needs:
- detect tmux (`-V`) and whether we are running inside a tmux client,
- create detached sessions and split them into panes,
- apply a named layout and rename the window,
- send an interrupt or literal text (never `Enter`) to a pane,
- query/kill sessions and attach to one.

Design constraints:
- sessions are always created detached (`new-session -d`); only `attach()` touches the user's terminal,
- existence checks and kills use exact-match targets (`=name`) so `auth` never matches `auth-api`,
- every command is awaited through `maestro.proc.run`, which raises `CalledProcessError` on failure.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from . import proc

SessionLiveStatus = Literal["active", "inactive", "not-found"]


@dataclass(frozen=True)
class TmuxSession:
    name: str
    attached: bool
    windows: int = 1


def in_tmux() -> bool:
    return bool(os.environ.get("TMUX"))


def login_shell() -> str:
    # Override with MAESTRO_PANE_SHELL to force a shell independent of the user's login shell.
    return os.environ.get("MAESTRO_PANE_SHELL") or os.environ.get("SHELL") or "/bin/bash"


class TmuxClient:
    async def is_installed(self) -> bool:
        try:
            p = await proc.run(["tmux", "-V"], check=False)
        except FileNotFoundError:
            return False
        return p.returncode == 0

    async def has_session(self, name: str) -> bool:
        p = await proc.run(["tmux", "has-session", "-t", f"={name}"], check=False)
        return p.returncode == 0

    async def new_session(self, name: str, *, cwd: Path, shell: str) -> None:
        await self._tmux(["new-session", "-d", "-s", name, "-c", str(cwd), shell, "-l"])

    async def split_window(self, target: str, *, cwd: Path, shell: str, flag: str) -> None:
        await self._tmux(["split-window", "-t", target, "-c", str(cwd), flag, shell, "-l"])

    async def select_layout(self, target: str, layout: str) -> None:
        await self._tmux(["select-layout", "-t", target, layout])

    async def rename_window(self, target: str, name: str) -> None:
        await self._tmux(["rename-window", "-t", target, name])

    async def list_panes(self, target: str) -> list[str]:
        """Pane ids of the target window, in pane-index order."""
        out = await self._tmux(["list-panes", "-t", target, "-F", "#{pane_index} #{pane_id}"])
        rows: list[tuple[int, str]] = []
        for line in out.splitlines():
            if not line.strip():
                continue
            idx, pane_id = line.split(" ", 1)
            rows.append((int(idx), pane_id.strip()))
        return [pane_id for _, pane_id in sorted(rows)]

    async def send_interrupt(self, pane: str) -> None:
        await self._tmux(["send-keys", "-t", pane, "C-c"])

    async def send_literal(self, pane: str, text: str) -> None:
        # `-l` disables key-name lookup; `--` keeps text that starts with "-" from parsing as a flag.
        await self._tmux(["send-keys", "-t", pane, "-l", "--", text])

    async def kill_session(self, name: str) -> None:
        await self._tmux(["kill-session", "-t", f"={name}"])

    async def list_sessions(self) -> list[TmuxSession]:
        p = await proc.run(
            ["tmux", "list-sessions", "-F", "#{session_name}:#{session_attached}:#{session_windows}"],
            check=False,
        )
        if p.returncode != 0:
            # No server running means no sessions.
            return []
        sessions: list[TmuxSession] = []
        for line in p.stdout.splitlines():
            if not line.strip():
                continue
            name, attached, windows = line.rsplit(":", 2)
            sessions.append(TmuxSession(name=name, attached=attached not in ("", "0"), windows=int(windows or 1)))
        return sessions

    async def session_status(self, name: str) -> SessionLiveStatus:
        for session in await self.list_sessions():
            if session.name == name:
                return "active" if session.attached else "inactive"
        return "not-found"

    async def attach(self, name: str) -> int:
        if in_tmux():
            return await proc.run_interactive(["tmux", "switch-client", "-t", f"={name}"])
        return await proc.run_interactive(["tmux", "attach-session", "-t", f"={name}"])

    async def _tmux(self, args: list[str]) -> str:
        p = await proc.run(["tmux", *args])
        return p.stdout
