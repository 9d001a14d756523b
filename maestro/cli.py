"""maestro.cli

Command-line entrypoint for maestro, which turns a plan of features (`MAESTRO.yml`) into isolated
git worktrees plus tmux sessions whose panes are pre-loaded with (unsubmitted) commands.

Entry points
- `maestro.cli:main` (console script `maestro`)
- `python3 -m maestro ...` (delegates to this module)

Commands
- `implement [FEATURE ...]`: provision worktrees and sessions for the given features and their
  dependencies (all features when none are given).
  - `--sequential` / `--parallel`: override `settings.parallel_creation` for worktree creation.
  - `--skip-deps`: do not run the package manager's `install` in new worktrees.
  - `--context-mode shared|split`: override `settings.claude_md_mode`.
  - `--dry-run`: print the resolved plan and exit without touching git, tmux, or the state file.
  Pre-flight checks: tmux is installed, the control root is a git repository, every requested name
  is a feature of the plan. Unknown dependency names are reported as warnings; cycles are errors.
- `status`: print the recorded orchestration with each session's live tmux status.
- `list`: print the recorded sessions that are currently running.
- `attach SESSION`: bump the session's attach counter in the state file and attach to it
  (`switch-client` when already inside tmux).
- `kill [SESSION ...] | --all`: kill recorded sessions.
- `validate`: load the plan and report totals and dependency problems.

Control root and path resolution
- `Path($MAESTRO_CONTROL_ROOT).resolve()` when set, otherwise `Path.cwd().resolve()`.
- `--plan` (default `MAESTRO.yml`) resolves as `(control_root / <arg>).resolve()`.
- State lives at `.maestro/orchestra.state.json` and worktrees under `.worktrees/`, both under the
  control root.

Exit status
- 0 on success, 1 on a `MaestroError` (including invalid plans and failed pre-flight checks),
  2 on argument errors (argparse). Other exceptions propagate with a stack trace.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import subprocess
import sys
from pathlib import Path

from .config import DEFAULT_PLAN_FILENAME, load_plan
from .dag import topological_order, unknown_dependencies, validate_dependencies
from .errors import MaestroError, describe_failure
from .git_ops import GitClient
from .models import ContextMode, OrchestraPlan, OrchestraState
from .orchestrator import MaestroConfig, MaestroOrchestrator, OrchestrationResult, PlannedFeature
from .state import StateTracker
from .tmux import TmuxClient


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="maestro", description="Orchestrate feature worktrees and tmux sessions.")
    p.add_argument(
        "--plan",
        default=DEFAULT_PLAN_FILENAME,
        help=f"Path to the orchestration plan (default: ./{DEFAULT_PLAN_FILENAME}).",
    )
    sub = p.add_subparsers(dest="command", required=True)

    impl = sub.add_parser("implement", help="Create worktrees and tmux sessions for features.")
    impl.add_argument("features", nargs="*", help="Features to implement (default: all).")
    mode = impl.add_mutually_exclusive_group()
    mode.add_argument(
        "--sequential",
        dest="parallel",
        action="store_false",
        default=None,
        help="Create worktrees one at a time.",
    )
    mode.add_argument(
        "--parallel",
        dest="parallel",
        action="store_true",
        default=None,
        help="Create worktrees concurrently.",
    )
    impl.add_argument("--dry-run", action="store_true", help="Print what would be created and exit.")
    impl.add_argument("--skip-deps", action="store_true", help="Do not install dependencies in new worktrees.")
    impl.add_argument(
        "--context-mode",
        choices=[m.value for m in ContextMode],
        default=None,
        help="How CLAUDE.md is written: 'split' replaces it, 'shared' appends to it.",
    )

    sub.add_parser("status", help="Show the recorded orchestration and live session status.")
    sub.add_parser("list", help="List running orchestrated sessions.")

    attach = sub.add_parser("attach", help="Attach to an orchestrated session.")
    attach.add_argument("session", help="Session id (e.g. auth-backend).")

    kill = sub.add_parser("kill", help="Kill orchestrated sessions.")
    kill.add_argument("sessions", nargs="*", help="Session ids to kill.")
    kill.add_argument("--all", action="store_true", help="Kill every recorded session.")

    sub.add_parser("validate", help="Validate the plan file.")
    return p


def _control_root() -> Path:
    control_root_env = os.environ.get("MAESTRO_CONTROL_ROOT")
    return (Path(control_root_env) if control_root_env else Path.cwd()).resolve()


def _load_plan(path: Path) -> OrchestraPlan:
    try:
        return load_plan(path)
    except (FileNotFoundError, ValueError) as exc:
        raise MaestroError(str(exc)) from exc


def _load_state(cfg: MaestroConfig) -> OrchestraState | None:
    try:
        return cfg.state.load()
    except ValueError as exc:
        raise MaestroError(f"Could not read {cfg.state.path}: {exc}") from exc


def _print_dry_run(planned: list[PlannedFeature]) -> None:
    print("Dry run: the following would be created")
    for i, feature in enumerate(planned, start=1):
        print(f"{i}. {feature.name} (branch {feature.branch} from {feature.base})")
        if feature.dependencies:
            print(f"   depends on: {', '.join(feature.dependencies)}")
        for s in feature.sessions:
            print(f"   - session {s.session_id}: {s.panes} panes, {s.prompts} prompts")


def _print_summary(result: OrchestrationResult, plan: OrchestraPlan) -> None:
    session_count = sum(len(ids) for ids in result.sessions.values())
    pane_count = sum(s.panes for name in result.order for s in plan.features[name].sessions)
    print(f"Implemented {len(result.order)} features, {session_count} sessions, {pane_count} panes.")
    for name in result.order:
        print(f"  {name}: {result.worktrees[name]}")
        for sid in result.sessions.get(name, []):
            print(f"    - {sid}")
    if result.install_failures:
        print(f"Dependency install failed for: {', '.join(result.install_failures)}")
    if result.warning is not None:
        print(f"Warning: {result.warning}")
    print("")
    print("Next steps:")
    print("  maestro status            # show session status")
    print("  maestro attach <session>  # jump into a session; prompts are staged, press Enter to run")


async def _implement(args: argparse.Namespace, cfg: MaestroConfig) -> int:
    plan = cfg.plan
    unknown = [name for name in args.features if name not in plan.features]
    if unknown:
        raise MaestroError(f"Unknown feature(s): {', '.join(unknown)}")

    for name, dep in unknown_dependencies(plan.features):
        print(f"[maestro] ⚠ feature {name!r} depends on unknown feature {dep!r}; ignoring it", file=sys.stderr)
    # A cycle anywhere in the plan is fatal, even outside the requested closure.
    topological_order(plan.features)

    orch = MaestroOrchestrator(cfg)
    if args.dry_run:
        _print_dry_run(orch.plan(args.features))
        return 0

    if not await cfg.tmux.is_installed():
        raise MaestroError("tmux is not installed or not on PATH")
    if not await cfg.git.is_repository():
        raise MaestroError(f"{cfg.control_root} is not inside a git repository")

    result = await orch.run(
        args.features,
        parallel=args.parallel,
        context_mode=(ContextMode(args.context_mode) if args.context_mode else None),
        install_deps=(False if args.skip_deps else None),
    )
    if not result.order:
        print("Nothing to implement.")
        return 0
    _print_summary(result, plan)
    return 0


async def _status(cfg: MaestroConfig) -> int:
    state = _load_state(cfg)
    if state is None:
        print("No orchestration has been implemented yet.")
        return 0
    print(f"Orchestration: {state.status.value} (created {state.created_at})")
    for feature in state.features:
        print(f"  {feature.feature} [{feature.status.value}] {feature.worktree_path}")
        for session in feature.sessions:
            live = await cfg.tmux.session_status(session.session_name)
            print(
                f"    - {session.session_name} ({session.panes} panes): {live}, "
                f"attached {session.attached_count}x"
            )
    return 0


async def _list(cfg: MaestroConfig) -> int:
    state = _load_state(cfg)
    tracked = {s.session_name for _, s in state.sessions()} if state is not None else set()
    running = [s for s in await cfg.tmux.list_sessions() if s.name in tracked]
    if not running:
        print("No orchestrated sessions are running.")
        return 0
    for s in running:
        print(f"{s.name}\t{'attached' if s.attached else 'detached'}\t{s.windows} windows")
    return 0


async def _attach(args: argparse.Namespace, cfg: MaestroConfig) -> int:
    if not await cfg.tmux.has_session(args.session):
        raise MaestroError(f"Session {args.session!r} is not running")
    try:
        recorded = cfg.state.record_attach(args.session)
    except ValueError as exc:
        raise MaestroError(f"Could not read {cfg.state.path}: {exc}") from exc
    if recorded is None:
        print(f"[maestro] session {args.session} is not recorded in the orchestration state", file=sys.stderr)
    return await cfg.tmux.attach(args.session)


async def _kill(args: argparse.Namespace, cfg: MaestroConfig) -> int:
    names = list(args.sessions)
    if args.all:
        state = _load_state(cfg)
        if state is not None:
            names.extend(s.session_name for _, s in state.sessions() if s.session_name not in names)
    if not names:
        raise MaestroError("Name at least one session, or pass --all")

    failed = 0
    for name in names:
        if not await cfg.tmux.has_session(name):
            print(f"[maestro] session {name} is not running", file=sys.stderr)
            continue
        try:
            await cfg.tmux.kill_session(name)
        except subprocess.CalledProcessError as exc:
            print(f"[maestro] ✗ failed to kill {name}: {describe_failure(exc)}", file=sys.stderr)
            failed += 1
            continue
        print(f"Killed {name}")
    return 1 if failed else 0


def _validate(plan: OrchestraPlan) -> int:
    features = plan.features
    sessions = sum(len(f.sessions) for f in features.values())
    panes = sum(s.panes for f in features.values() for s in f.sessions)
    print(f"{len(features)} features, {sessions} sessions, {panes} panes")

    problems = validate_dependencies(features)
    if problems:
        for problem in problems:
            print(f"  ✗ {problem}")
        return 1
    print(f"Implementation order: {' -> '.join(topological_order(features))}")
    return 0


async def _dispatch(args: argparse.Namespace, control_root: Path) -> int:
    state = StateTracker(control_root)
    tmux = TmuxClient()

    if args.command in ("status", "list", "attach", "kill"):
        # Session commands work from the state file alone; the plan is not needed.
        cfg = MaestroConfig(
            control_root=control_root,
            plan=OrchestraPlan(features={}),
            git=GitClient(control_root=control_root),
            tmux=tmux,
            state=state,
        )
        if args.command == "status":
            return await _status(cfg)
        if args.command == "list":
            return await _list(cfg)
        if args.command == "attach":
            return await _attach(args, cfg)
        return await _kill(args, cfg)

    plan = _load_plan((control_root / args.plan).resolve())
    if args.command == "validate":
        return _validate(plan)

    cfg = MaestroConfig(
        control_root=control_root,
        plan=plan,
        git=GitClient(control_root=control_root),
        tmux=tmux,
        state=state,
    )
    return await _implement(args, cfg)


def main(argv: list[str] | None = None) -> int:
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(raw_argv)
    control_root = _control_root()

    try:
        return asyncio.run(_dispatch(args, control_root))
    except MaestroError as exc:
        print(f"[maestro] error: {exc}", file=sys.stderr)
        return 1
