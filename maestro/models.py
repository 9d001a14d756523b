"""maestro.models

Data model for orchestration plans (read-only input) and the persisted run state.

Plan side (parsed from MAESTRO.yml by `maestro.config`)
- `SessionSpec`: one tmux session request.
  - `name` (string, required, non-empty), unique within its feature.
  - `panes` (int, >= 1). The upper bound depends on the layout: horizontal layouts stop at 10 panes
    (columns become unusably narrow), vertical layouts at 15, `tiled`/unset at 30.
  - `layout` (`Layout` or None).
  - `prompts` (list[str]): literal command text, one per pane by position.
- `FeatureSpec`: one unit of orchestrated work backed by one git worktree.
  - `name` must match `^[A-Za-z0-9_-]+$`; it is the worktree branch (after `branch_prefix`) and
    the namespace for session ids.
  - `base` is the branch/revision to fork from; None means the plan's default branch.
  - `dependencies` are other feature names; order is kept and duplicates are dropped.
  - `context` and `agents` are opaque annotation data copied into the worktree's CLAUDE.md.
- `OrchestraSettings` / `OrchestraPlan`: global defaults plus the features keyed by name, in
  declaration order.

State side (persisted by `maestro.state.StateTracker` at `.maestro/orchestra.state.json`)
- `OrchestraState` -> `FeatureState` -> `SessionState`, serialized with exactly these snake_case keys:
  `created_at`, `status`, `features[]`; `feature`, `worktree_path`, `status`, `created_at`,
  `completed_at`, `sessions[]`; `name`, `session_name`, `panes`, `status`, `attached_count`.

Parsing rules
- `from_dict` coerces loosely (numbers to strings, missing lists to `[]`) like the rest of the
  codebase, but rejects values that would break orchestration: bad feature names, pane counts
  outside bounds, unknown layouts.
- Plan dictionaries also accept the MAESTRO.yml key names: `feature` for `name` and
  `claude_context` for `context`.
- Unknown status strings in the state document fall back to the first (initial) status.
- Unknown keys in state records are kept in `extra` and written back on save.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Mapping

FEATURE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

MAX_PANES_HORIZONTAL = 10
MAX_PANES_VERTICAL = 15
MAX_PANES = 30


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Layout(str, Enum):
    EVEN_HORIZONTAL = "even-horizontal"
    EVEN_VERTICAL = "even-vertical"
    MAIN_HORIZONTAL = "main-horizontal"
    MAIN_VERTICAL = "main-vertical"
    TILED = "tiled"

    def split_flag(self) -> str | None:
        """Fixed `split-window` orientation for directional layouts; None when tmux should decide."""
        if self in (Layout.EVEN_HORIZONTAL, Layout.MAIN_HORIZONTAL):
            return "-h"
        if self in (Layout.EVEN_VERTICAL, Layout.MAIN_VERTICAL):
            return "-v"
        return None


class ContextMode(str, Enum):
    SHARED = "shared"
    SPLIT = "split"


class OrchestraStatus(str, Enum):
    PLANNING = "planning"
    IMPLEMENTING = "implementing"
    ACTIVE = "active"
    COMPLETED = "completed"


class FeatureStatus(str, Enum):
    PENDING = "pending"
    CREATED = "created"
    ACTIVE = "active"
    COMPLETED = "completed"


class SessionStatus(str, Enum):
    PENDING = "pending"
    CREATED = "created"
    ACTIVE = "active"


def max_panes(layout: Layout | None) -> int:
    flag = layout.split_flag() if layout is not None else None
    if flag == "-h":
        return MAX_PANES_HORIZONTAL
    if flag == "-v":
        return MAX_PANES_VERTICAL
    return MAX_PANES


def _str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(x) for x in value]


@dataclass(frozen=True)
class SessionSpec:
    name: str
    panes: int = 1
    layout: Layout | None = None
    prompts: list[str] = field(default_factory=list)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "SessionSpec":
        name = str(d.get("name") or "").strip()
        if not name:
            raise ValueError("session is missing required field: name")

        raw_panes = d.get("panes", 1)
        try:
            panes = int(raw_panes)
        except (TypeError, ValueError):
            raise ValueError(f"session {name!r}: panes must be an integer, got {raw_panes!r}") from None

        raw_layout = d.get("layout")
        layout: Layout | None = None
        if raw_layout:
            try:
                layout = Layout(str(raw_layout))
            except ValueError:
                allowed = ", ".join(item.value for item in Layout)
                raise ValueError(f"session {name!r}: unknown layout {raw_layout!r} (expected one of {allowed})") from None

        limit = max_panes(layout)
        if panes < 1 or panes > limit:
            raise ValueError(f"session {name!r}: panes must be between 1 and {limit}, got {panes}")

        return SessionSpec(name=name, panes=panes, layout=layout, prompts=_str_list(d.get("prompts")))

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name, "panes": self.panes, "prompts": list(self.prompts)}
        if self.layout is not None:
            d["layout"] = self.layout.value
        return d


@dataclass(frozen=True)
class FeatureSpec:
    name: str
    description: str = ""
    base: str | None = None
    sessions: list[SessionSpec] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    context: str | None = None
    agents: list[str] = field(default_factory=list)
    branch_prefix: str = ""

    @property
    def branch(self) -> str:
        return f"{self.branch_prefix}{self.name}"

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "FeatureSpec":
        name = str(d.get("name") or d.get("feature") or "").strip()
        if not FEATURE_NAME_RE.match(name):
            raise ValueError(f"feature name must be alphanumeric with dashes/underscores, got {name!r}")

        sessions = [SessionSpec.from_dict(s) for s in (d.get("sessions") or [])]
        seen: set[str] = set()
        for s in sessions:
            if s.name in seen:
                raise ValueError(f"feature {name!r}: duplicate session name {s.name!r}")
            seen.add(s.name)

        deps: list[str] = []
        for dep in _str_list(d.get("dependencies")):
            if dep not in deps:
                deps.append(dep)

        context = d.get("context", d.get("claude_context"))
        base = d.get("base")
        return FeatureSpec(
            name=name,
            description=str(d.get("description") or ""),
            base=(str(base) if base else None),
            sessions=sessions,
            dependencies=deps,
            context=(str(context) if context is not None else None),
            agents=_str_list(d.get("agents")),
            branch_prefix=str(d.get("branch_prefix") or ""),
        )


@dataclass(frozen=True)
class OrchestraSettings:
    base_branch: str = "main"
    parallel: bool = True
    context_mode: ContextMode = ContextMode.SPLIT
    install_deps: bool = True

    @staticmethod
    def from_dict(d: Mapping[str, Any] | None) -> "OrchestraSettings":
        d = d or {}
        raw_mode = d.get("claude_md_mode", d.get("context_mode", ContextMode.SPLIT.value))
        try:
            mode = ContextMode(str(raw_mode))
        except ValueError:
            raise ValueError(f"settings: context mode must be 'shared' or 'split', got {raw_mode!r}") from None
        return OrchestraSettings(
            base_branch=str(d.get("base_branch") or "main"),
            parallel=bool(d.get("parallel_creation", d.get("parallel", True))),
            context_mode=mode,
            install_deps=bool(d.get("auto_install_deps", d.get("install_deps", True))),
        )


@dataclass(frozen=True)
class OrchestraPlan:
    features: dict[str, FeatureSpec]
    settings: OrchestraSettings = field(default_factory=OrchestraSettings)
    description: str | None = None


def _required(d: Mapping[str, Any], key: str, *, what: str) -> str:
    value = d.get(key)
    if value is None or not str(value).strip():
        raise ValueError(f"{what} is missing required field: {key}")
    return str(value)


@dataclass
class SessionState:
    name: str
    session_name: str
    panes: int
    status: SessionStatus = SessionStatus.PENDING
    attached_count: int = 0
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "SessionState":
        known = {"name", "session_name", "panes", "status", "attached_count"}
        try:
            status = SessionStatus(str(d.get("status", SessionStatus.PENDING.value)))
        except ValueError:
            status = SessionStatus.PENDING
        return SessionState(
            name=_required(d, "name", what="state session"),
            session_name=_required(d, "session_name", what="state session"),
            panes=int(d.get("panes") or 1),
            status=status,
            attached_count=int(d.get("attached_count") or 0),
            extra={k: v for k, v in d.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "name": self.name,
            "session_name": self.session_name,
            "panes": self.panes,
            "status": self.status.value,
            "attached_count": self.attached_count,
        }
        d.update(self.extra)
        return d


@dataclass
class FeatureState:
    feature: str
    worktree_path: str
    status: FeatureStatus = FeatureStatus.PENDING
    sessions: list[SessionState] = field(default_factory=list)
    created_at: str | None = None
    completed_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "FeatureState":
        known = {"feature", "worktree_path", "status", "sessions", "created_at", "completed_at"}
        try:
            status = FeatureStatus(str(d.get("status", FeatureStatus.PENDING.value)))
        except ValueError:
            status = FeatureStatus.PENDING
        return FeatureState(
            feature=_required(d, "feature", what="state feature"),
            worktree_path=str(d.get("worktree_path") or ""),
            status=status,
            sessions=[SessionState.from_dict(s) for s in (d.get("sessions") or [])],
            created_at=(str(d["created_at"]) if d.get("created_at") is not None else None),
            completed_at=(str(d["completed_at"]) if d.get("completed_at") is not None else None),
            extra={k: v for k, v in d.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "feature": self.feature,
            "worktree_path": self.worktree_path,
            "status": self.status.value,
            "sessions": [s.to_dict() for s in self.sessions],
        }
        if self.created_at is not None:
            d["created_at"] = self.created_at
        if self.completed_at is not None:
            d["completed_at"] = self.completed_at
        d.update(self.extra)
        return d


@dataclass
class OrchestraState:
    created_at: str
    status: OrchestraStatus = OrchestraStatus.PLANNING
    features: list[FeatureState] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "OrchestraState":
        known = {"created_at", "status", "features"}
        try:
            status = OrchestraStatus(str(d.get("status", OrchestraStatus.PLANNING.value)))
        except ValueError:
            status = OrchestraStatus.PLANNING
        return OrchestraState(
            created_at=str(d.get("created_at") or ""),
            status=status,
            features=[FeatureState.from_dict(f) for f in (d.get("features") or [])],
            extra={k: v for k, v in d.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "created_at": self.created_at,
            "status": self.status.value,
            "features": [f.to_dict() for f in self.features],
        }
        d.update(self.extra)
        return d

    def sessions(self) -> Iterator[tuple[FeatureState, SessionState]]:
        for feature in self.features:
            for session in feature.sessions:
                yield feature, session

    def find_session(self, session_name: str) -> tuple[FeatureState, SessionState] | None:
        for feature, session in self.sessions():
            if session.session_name == session_name:
                return feature, session
        return None
