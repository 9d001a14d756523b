"""Git worktree management for maestro.

`GitClient` is the workspace collaborator: every method maps to one or two `git` invocations run
through `maestro.proc.run`, so callers can reason about side effects and every call is an await point.

Data model
- `GitWorktree`: an immutable `(branch, path, created_branch)` record. `created_branch` is True when
  `create_worktree()` had to create the branch itself (`worktree add -b`); rollback uses it to decide
  whether the branch should be deleted along with the worktree.

GitClient API
- `is_repository() -> bool`
  True when `control_root` is inside a git work tree.
- `worktrees() -> dict[str, Path]`
  Parses `git worktree list --porcelain` and returns local branch name -> absolute worktree path.
  Detached or bare entries are ignored.
- `branch_exists(branch) -> bool`
  Checks `refs/heads/<branch>` with `show-ref --verify --quiet`.
- `create_worktree(branch=..., base_ref=...) -> GitWorktree`
  Creates `<worktrees_dir>/<branch with "/" replaced by "__">`:
  - existing local branch: `git worktree add <path> <branch>`
  - otherwise: `git worktree add -b <branch> <path> <base_ref>`
  It does not check for an existing worktree; the provisioner does that so it can tell reused
  worktrees from ones created in the current run.
- `delete_worktree(path, force=..., branch=None) -> None`
  `git worktree remove [--force] <path>`, then `git branch -D <branch>` when a branch is given.

Failures raise `subprocess.CalledProcessError` with git's stderr attached.

Terminology
- `control_root` is the repository root; all git commands run there.
- `worktrees_dir` defaults to `<control_root>/.worktrees` and should be git-ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from . import proc


@dataclass(frozen=True)
class GitWorktree:
    branch: str
    path: Path
    created_branch: bool = False


def worktree_dirname(branch: str) -> str:
    return branch.replace("/", "__")


class GitClient:
    def __init__(self, *, control_root: Path, worktrees_dir: Path | None = None) -> None:
        self.control_root = control_root
        self.worktrees_dir = worktrees_dir or (control_root / ".worktrees")

    async def is_repository(self) -> bool:
        p = await proc.run(["git", "rev-parse", "--is-inside-work-tree"], cwd=self.control_root, check=False)
        return p.returncode == 0 and p.stdout.strip() == "true"

    async def worktrees(self) -> dict[str, Path]:
        """Return mapping of branch name -> worktree path."""
        out = await self._git(["worktree", "list", "--porcelain"])
        current_path: Path | None = None
        branch: str | None = None
        result: dict[str, Path] = {}

        def flush() -> None:
            nonlocal current_path, branch
            if current_path is not None and branch is not None and branch.startswith("refs/heads/"):
                result[branch.removeprefix("refs/heads/")] = current_path
            current_path = None
            branch = None

        for line in out.splitlines():
            if not line.strip():
                continue
            if line.startswith("worktree "):
                flush()
                current_path = Path(line.split(" ", 1)[1]).resolve()
            elif line.startswith("branch "):
                branch = line.split(" ", 1)[1].strip()

        flush()
        return result

    async def branch_exists(self, branch: str) -> bool:
        p = await proc.run(
            ["git", "show-ref", "--verify", "--quiet", f"refs/heads/{branch}"],
            cwd=self.control_root,
            check=False,
        )
        return p.returncode == 0

    async def create_worktree(self, *, branch: str, base_ref: str) -> GitWorktree:
        self.worktrees_dir.mkdir(parents=True, exist_ok=True)
        wt_path = (self.worktrees_dir / worktree_dirname(branch)).resolve()

        if await self.branch_exists(branch):
            await self._git(["worktree", "add", str(wt_path), branch])
            return GitWorktree(branch=branch, path=wt_path, created_branch=False)

        await self._git(["worktree", "add", "-b", branch, str(wt_path), base_ref])
        return GitWorktree(branch=branch, path=wt_path, created_branch=True)

    async def delete_worktree(self, path: Path, *, force: bool = True, branch: str | None = None) -> None:
        args = ["worktree", "remove"]
        if force:
            args.append("--force")
        await self._git([*args, str(path)])
        if branch:
            await self._git(["branch", "-D", branch])

    async def _git(self, args: list[str]) -> str:
        p = await proc.run(["git", *args], cwd=self.control_root)
        return p.stdout
