"""Maestro orchestrator: resolve -> provision -> build sessions -> persist, with rollback.

`MaestroOrchestrator.run()` turns a set of requested features into ready-to-use workspaces:

Stages
1. Resolving
  - `dag.resolve()` computes a dependency-first order over the requested names (all features when
    none are requested). A `CircularDependencyError` propagates as-is: nothing has been created yet.
2. Provisioning
  - `provision.provision()` creates (or reuses) one git worktree per feature, in parallel or
    sequentially per the plan settings / caller override.
  - Optionally installs JavaScript dependencies in each worktree. Install failures are logged and
    reported on the result, never fatal.
3. Session building (always sequential, features in resolved order, sessions in declared order)
  - `sessions.build_session()` creates the tmux session and its panes.
  - `sessions.inject_prompts()` stages each pane's prompt without pressing Enter. Sessions that
    already existed before the run are returned as-is and receive no input.
  - `context.annotate()` writes the worktree's CLAUDE.md when the feature has context or agents.
4. Persisted
  - The complete `OrchestraState` is written once via `StateTracker.save()`. A write failure becomes
    a `PersistenceWarning` on the result: the workspaces and sessions exist and are usable, so the run
    still succeeds.

Failure and rollback
- Every worktree and session created in the current run is recorded in a `RollbackLedger` the moment
  it exists. Any failure in stages 2-3 replays the ledger newest-first (sessions are killed, then
  worktrees are force-removed) before the error leaves `run()`.
- Errors leave as `OrchestrationError` (`ProvisioningError` / `SessionBuildError`) with `stage`,
  `cause`, and the rollback step failures in `rollback_errors`.
- Interrupts (`KeyboardInterrupt`, task cancellation) roll back as well and then propagate unchanged.
- The state file is never written by a failed run.

`plan()` is the side-effect-free counterpart used by `maestro implement --dry-run`.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .context import annotate
from .dag import resolve
from .errors import OrchestrationError, PersistenceWarning, SessionBuildError
from .git_ops import GitClient
from .models import (
    ContextMode,
    FeatureSpec,
    FeatureState,
    FeatureStatus,
    OrchestraPlan,
    OrchestraState,
    OrchestraStatus,
    SessionState,
    SessionStatus,
    now_iso,
)
from .provision import install_dependencies, provision
from .rollback import RollbackLedger
from .sessions import build_session, inject_prompts, session_name
from .state import StateTracker
from .tmux import TmuxClient


@dataclass(frozen=True)
class MaestroConfig:
    control_root: Path
    plan: OrchestraPlan
    git: GitClient
    tmux: TmuxClient
    state: StateTracker


@dataclass
class OrchestrationResult:
    order: list[str]
    worktrees: dict[str, Path]
    sessions: dict[str, list[str]]
    state: OrchestraState | None
    warning: PersistenceWarning | None = None
    install_failures: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PlannedSession:
    session_id: str
    name: str
    panes: int
    prompts: int


@dataclass(frozen=True)
class PlannedFeature:
    name: str
    branch: str
    base: str
    dependencies: list[str]
    sessions: list[PlannedSession]


class MaestroOrchestrator:
    def __init__(self, cfg: MaestroConfig) -> None:
        self.cfg = cfg

    def _resolve(self, requested: Iterable[str] | None) -> list[FeatureSpec]:
        features = self.cfg.plan.features
        names = list(requested) if requested else list(features)
        return [features[name] for name in resolve(names, features)]

    def plan(self, requested: Iterable[str] | None = None) -> list[PlannedFeature]:
        """Describe what `run()` would create, without touching git or tmux."""
        default_base = self.cfg.plan.settings.base_branch
        planned: list[PlannedFeature] = []
        for feature in self._resolve(requested):
            planned.append(
                PlannedFeature(
                    name=feature.name,
                    branch=feature.branch,
                    base=(feature.base or default_base),
                    dependencies=list(feature.dependencies),
                    sessions=[
                        PlannedSession(
                            session_id=session_name(feature.name, s.name),
                            name=s.name,
                            panes=s.panes,
                            prompts=min(len([p for p in s.prompts if p]), s.panes),
                        )
                        for s in feature.sessions
                    ],
                )
            )
        return planned

    async def run(
        self,
        requested: Iterable[str] | None = None,
        *,
        parallel: bool | None = None,
        context_mode: ContextMode | None = None,
        install_deps: bool | None = None,
    ) -> OrchestrationResult:
        settings = self.cfg.plan.settings
        parallel = settings.parallel if parallel is None else parallel
        context_mode = settings.context_mode if context_mode is None else context_mode
        install_deps = settings.install_deps if install_deps is None else install_deps

        features = self._resolve(requested)
        order = [f.name for f in features]
        if not features:
            print("[maestro] nothing to implement", file=sys.stderr)
            return OrchestrationResult(order=[], worktrees={}, sessions={}, state=None)

        print(f"[maestro] implementation order: {' -> '.join(order)}", file=sys.stderr)

        ledger = RollbackLedger()
        stage = "provisioning"
        install_failures: list[str] = []
        try:
            worktrees = await provision(
                features,
                git=self.cfg.git,
                default_base=settings.base_branch,
                parallel=parallel,
                ledger=ledger,
            )
            if install_deps:
                install_failures = await install_dependencies(worktrees)

            stage = "session_building"
            sessions = await self._build_sessions(features, worktrees, context_mode=context_mode, ledger=ledger)
        except Exception as exc:
            print(f"[maestro] ✗ orchestration failed during {stage}, rolling back", file=sys.stderr)
            rollback_errors = await ledger.rollback()
            if isinstance(exc, OrchestrationError):
                exc.rollback_errors.extend(rollback_errors)
                raise
            err = OrchestrationError(f"Orchestration failed during {stage}", stage=stage, cause=exc)
            err.rollback_errors.extend(rollback_errors)
            raise err from exc
        except BaseException:
            print("[maestro] interrupted, rolling back", file=sys.stderr)
            await ledger.rollback()
            raise

        state = self._build_state(features, worktrees)
        warning: PersistenceWarning | None = None
        try:
            self.cfg.state.save(state)
        except OSError as exc:
            warning = PersistenceWarning(self.cfg.state.path, exc)
            print(f"[maestro] ⚠ {warning}", file=sys.stderr)

        return OrchestrationResult(
            order=order,
            worktrees=worktrees,
            sessions=sessions,
            state=state,
            warning=warning,
            install_failures=install_failures,
        )

    async def _build_sessions(
        self,
        features: list[FeatureSpec],
        worktrees: dict[str, Path],
        *,
        context_mode: ContextMode,
        ledger: RollbackLedger,
    ) -> dict[str, list[str]]:
        tmux = self.cfg.tmux
        built: dict[str, list[str]] = {}
        seen: set[str] = set()
        for feature in features:
            work_dir = worktrees[feature.name]
            ids: list[str] = []
            for session in feature.sessions:
                sid = session_name(feature.name, session.name)
                if sid in seen:
                    # Truncation mapped two sessions onto one tmux name; the first one wins.
                    print(
                        f"[maestro] ⚠ session id {sid} is shared by {feature.name}/{session.name}; "
                        "reusing the existing session",
                        file=sys.stderr,
                    )
                    continue
                seen.add(sid)
                preexisting = await tmux.has_session(sid)
                sid = await build_session(
                    tmux,
                    feature_name=feature.name,
                    session=session,
                    work_dir=work_dir,
                    ledger=ledger,
                )
                if not preexisting:
                    await inject_prompts(tmux, session_id=sid, prompts=session.prompts[: session.panes])
                ids.append(sid)
            built[feature.name] = ids

            if feature.context or feature.agents:
                try:
                    path = await asyncio.to_thread(annotate, feature, work_dir, context_mode)
                except OSError as exc:
                    raise SessionBuildError(f"Failed to write context file for {feature.name!r}", cause=exc) from exc
                print(f"[maestro] ✓ wrote {path}", file=sys.stderr)
        return built

    def _build_state(self, features: list[FeatureSpec], worktrees: dict[str, Path]) -> OrchestraState:
        created_at = now_iso()
        seen: set[str] = set()
        feature_states: list[FeatureState] = []
        for feature in features:
            sessions: list[SessionState] = []
            for s in feature.sessions:
                sid = session_name(feature.name, s.name)
                if sid in seen:
                    continue
                seen.add(sid)
                sessions.append(
                    SessionState(
                        name=s.name,
                        session_name=sid,
                        panes=s.panes,
                        status=SessionStatus.CREATED,
                        attached_count=0,
                    )
                )
            feature_states.append(
                FeatureState(
                    feature=feature.name,
                    worktree_path=str(worktrees[feature.name]),
                    status=FeatureStatus.CREATED,
                    created_at=created_at,
                    sessions=sessions,
                )
            )
        return OrchestraState(created_at=created_at, status=OrchestraStatus.ACTIVE, features=feature_states)
