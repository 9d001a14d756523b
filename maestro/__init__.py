"""maestro: feature orchestration across git worktrees and tmux sessions.

Given a plan of features (`MAESTRO.yml`), maestro provisions one git worktree per feature in
dependency order, builds the tmux sessions each feature asks for, stages the configured commands in
their panes without running them, and records what it created in `.maestro/orchestra.state.json`.

What maestro provides
- A CLI entrypoint (`maestro.cli:main`, runnable via `python -m maestro`) with `implement`, `status`,
  `list`, `attach`, `kill`, and `validate` commands.
- An orchestrator (`maestro.orchestrator.MaestroOrchestrator`) that:
  - resolves a dependency-first order over the requested features (`maestro.dag`),
  - creates worktrees under `.worktrees/`, in parallel or sequentially (`maestro.provision`),
  - builds sessions and injects prompts (`maestro.sessions`),
  - writes per-worktree CLAUDE.md context (`maestro.context`),
  - rolls back everything it created in the run when a step fails (`maestro.rollback`).

What maestro intentionally does not do
- Run or supervise the commands it stages; panes are handed over to the operator untouched after
  injection.
- Schedule builds or tasks beyond the one-time creation order.

Key exports from this module
- `__version__`: the package version string. (`__all__` is intentionally limited to this.)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
