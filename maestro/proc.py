"""Async external-command runner shared by the git and tmux clients.

Every call is one `asyncio.create_subprocess_exec` invocation and therefore one suspension point of
the single-threaded orchestrator. Output is captured as text; a non-zero exit raises
`subprocess.CalledProcessError` with `stdout`/`stderr` populated so callers can surface the tool's
own error text.
"""

from __future__ import annotations

import asyncio
import subprocess
from pathlib import Path


async def run(argv: list[str], *, cwd: Path | None = None, check: bool = True) -> subprocess.CompletedProcess[str]:
    proc = await asyncio.create_subprocess_exec(
        *argv,
        cwd=(str(cwd) if cwd is not None else None),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    out, err = await proc.communicate()
    stdout = out.decode("utf-8", errors="replace")
    stderr = err.decode("utf-8", errors="replace")
    returncode = proc.returncode if proc.returncode is not None else -1
    if check and returncode != 0:
        raise subprocess.CalledProcessError(returncode, argv, output=stdout, stderr=stderr)
    return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr=stderr)


async def run_interactive(argv: list[str], *, cwd: Path | None = None) -> int:
    """Run a command attached to the caller's terminal (no pipes) and return its exit code."""
    proc = await asyncio.create_subprocess_exec(*argv, cwd=(str(cwd) if cwd is not None else None))
    return await proc.wait()
