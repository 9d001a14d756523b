"""tmux session topology and prompt injection for orchestrated features.

Session ids
- `session_name(feature, session)` is `"<feature>-<session>"` with every character outside
  `[A-Za-z0-9-]` replaced by `-`, truncated to 30 characters. It is deterministic, so re-running an
  orchestration targets the same tmux sessions.

Building (`build_session`)
- Idempotent: when a session with the id already exists it is returned untouched (no new panes),
  so a re-run never corrupts a session someone is already working in.
- Otherwise, in order:
  1. `new-session -d` rooted at the worktree, running the pane shell as a login shell;
  2. exactly `panes - 1` splits. Directional layouts force their orientation on every split;
     otherwise orientation alternates by pane index (even -> `-h`, odd -> `-v`) to avoid a strip of
     ever-thinner panes;
  3. `select-layout` when the session names a layout;
  4. `rename-window` to the session's logical name.
- A newly created session is recorded in the rollback ledger (kill-session) right after step 1.

Injection (`inject_prompts`)
- Prompts map to panes by index. For each pane with a non-empty prompt: `C-c` first (a shell may
  still be starting up), a short settling delay, then the prompt as literal keys.
- `Enter` is never sent. Prompts are staged for the operator to review and run.
- Panes without a prompt get no input; extra prompts beyond the pane count are ignored.
"""

from __future__ import annotations

import asyncio
import functools
import re
import sys
from pathlib import Path

from .errors import SessionBuildError
from .models import SessionSpec
from .rollback import RollbackLedger
from .tmux import TmuxClient, login_shell

SESSION_NAME_MAX = 30
SETTLE_SECONDS = 0.1

_UNSAFE = re.compile(r"[^A-Za-z0-9-]")


def session_name(feature: str, session: str) -> str:
    return _UNSAFE.sub("-", f"{feature}-{session}")[:SESSION_NAME_MAX]


def split_flag(session: SessionSpec, index: int) -> str:
    if session.layout is not None:
        flag = session.layout.split_flag()
        if flag is not None:
            return flag
    return "-h" if index % 2 == 0 else "-v"


async def build_session(
    tmux: TmuxClient,
    *,
    feature_name: str,
    session: SessionSpec,
    work_dir: Path,
    ledger: RollbackLedger | None = None,
) -> str:
    sid = session_name(feature_name, session.name)
    try:
        if await tmux.has_session(sid):
            print(f"[maestro] session {sid} already exists, skipping", file=sys.stderr)
            return sid

        shell = login_shell()
        await tmux.new_session(sid, cwd=work_dir, shell=shell)
        if ledger is not None:
            ledger.record("session", sid, functools.partial(tmux.kill_session, sid))

        for i in range(1, session.panes):
            await tmux.split_window(sid, cwd=work_dir, shell=shell, flag=split_flag(session, i))

        if session.layout is not None:
            await tmux.select_layout(sid, session.layout.value)
        await tmux.rename_window(sid, session.name)
    except SessionBuildError:
        raise
    except Exception as exc:
        raise SessionBuildError(f"Failed to build tmux session {sid!r}", session=sid, cause=exc) from exc

    print(f"[maestro] ✓ session {sid} ({session.panes} panes)", file=sys.stderr)
    return sid


async def inject_prompts(
    tmux: TmuxClient,
    *,
    session_id: str,
    prompts: list[str],
    settle: float = SETTLE_SECONDS,
) -> None:
    if not any(prompts):
        return
    try:
        panes = await tmux.list_panes(session_id)
        for pane, prompt in zip(panes, prompts):
            if not prompt:
                continue
            await tmux.send_interrupt(pane)
            await asyncio.sleep(settle)
            await tmux.send_literal(pane, prompt)
    except Exception as exc:
        raise SessionBuildError(f"Failed to inject prompts into {session_id!r}", session=session_id, cause=exc) from exc
