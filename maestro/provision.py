"""Workspace provisioning: one git worktree per feature.

`provision()` creates the worktrees for an already-resolved, dependency-first list of features.

- The worktree branch is `feature.branch` (`branch_prefix + name`); the base is `feature.base`, falling
  back to the plan's default branch.
- A feature whose branch already has a worktree reuses it. Reused worktrees are not recorded in the
  rollback ledger: only resources created by the current run are ever removed.
- Each new worktree is recorded in the ledger the moment it exists, with an undo action that
  force-removes it (and deletes the branch when this run created it).
- Sequential mode (`parallel=False`) creates worktrees strictly in the given order and stops at the
  first failure. Parallel mode starts every creation at once, waits for all of them, and then raises
  the first failure in feature order. Either way nothing is cleaned up here; that is the
  orchestrator's job, driven by the ledger.

`install_dependencies()` is an optional post-provisioning step: it runs the detected JavaScript
package manager's `install` in each worktree. Failures are reported but never abort a run.
"""

from __future__ import annotations

import asyncio
import functools
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from . import proc
from .errors import ProvisioningError, describe_failure
from .git_ops import GitClient
from .models import FeatureSpec
from .rollback import RollbackLedger

_LOCKFILES = [
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
    ("package-lock.json", "npm"),
]


async def provision(
    features: Sequence[FeatureSpec],
    *,
    git: GitClient,
    default_base: str,
    parallel: bool,
    ledger: RollbackLedger | None = None,
) -> dict[str, Path]:
    """Create (or reuse) a worktree per feature and return feature name -> worktree path."""
    try:
        existing = await git.worktrees()
    except Exception as exc:
        raise ProvisioningError("Could not list existing worktrees", cause=exc) from exc

    paths: dict[str, Path] = {}

    async def create(feature: FeatureSpec) -> None:
        if feature.branch in existing:
            paths[feature.name] = existing[feature.branch]
            print(f"[maestro] reusing worktree for {feature.name}: {existing[feature.branch]}", file=sys.stderr)
            return

        base = feature.base or default_base
        try:
            wt = await git.create_worktree(branch=feature.branch, base_ref=base)
        except Exception as exc:
            print(f"[maestro] ✗ failed to create worktree for {feature.name}: {describe_failure(exc)}", file=sys.stderr)
            raise ProvisioningError(
                f"Failed to create worktree for {feature.name!r} from {base!r}",
                feature=feature.name,
                cause=exc,
            ) from exc

        if ledger is not None:
            undo = functools.partial(
                git.delete_worktree,
                wt.path,
                force=True,
                branch=(wt.branch if wt.created_branch else None),
            )
            ledger.record("worktree", str(wt.path), undo)
        paths[feature.name] = wt.path
        print(f"[maestro] ✓ created worktree for {feature.name}: {wt.path}", file=sys.stderr)

    if parallel:
        results = await asyncio.gather(*(create(f) for f in features), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
    else:
        for feature in features:
            await create(feature)

    return {f.name: paths[f.name] for f in features}


def detect_package_manager(path: Path) -> str | None:
    for lockfile, manager in _LOCKFILES:
        if (path / lockfile).exists():
            return manager
    if (path / "package.json").exists():
        return "npm"
    return None


async def install_dependencies(paths: Mapping[str, Path]) -> list[str]:
    """Run `<package manager> install` in each worktree; return the features whose install failed."""
    failed: list[str] = []
    for feature, path in paths.items():
        manager = detect_package_manager(path)
        if manager is None:
            continue
        print(f"[maestro] installing dependencies for {feature} ({manager})", file=sys.stderr)
        try:
            await proc.run([manager, "install"], cwd=path)
        except Exception as exc:
            print(f"[maestro] ⚠ failed to install dependencies for {feature}: {describe_failure(exc)}", file=sys.stderr)
            failed.append(feature)
    return failed
