"""Persisted orchestration state (`.maestro/orchestra.state.json`).

The state document records what the last successful `implement` run created: one entry per feature
with its worktree path and the tmux sessions built for it. It is written once per run, after every
workspace and session exists, so a failed run never leaves a state file behind. Later commands
(`status`, `attach`) read it and only touch the per-session counters.
"""

from __future__ import annotations

import json
from pathlib import Path

from .models import FeatureStatus, OrchestraState, SessionState, SessionStatus

STATE_DIRNAME = ".maestro"
STATE_FILENAME = "orchestra.state.json"


class StateTracker:
    def __init__(self, control_root: Path, *, path: Path | None = None) -> None:
        self.control_root = control_root
        self.path = path or (control_root / STATE_DIRNAME / STATE_FILENAME)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> OrchestraState | None:
        """Return the last saved state, or None when no run has been recorded yet."""
        if not self.path.exists():
            return None
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"{self.path} must contain a JSON object, got {type(raw).__name__}")
        return OrchestraState.from_dict(raw)

    def save(self, state: OrchestraState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state.to_dict(), indent=2) + "\n", encoding="utf-8")

    def record_attach(self, session_name: str) -> SessionState | None:
        """Bump the attach counter for a session; returns None when the session is not tracked."""
        state = self.load()
        if state is None:
            return None
        found = state.find_session(session_name)
        if found is None:
            return None
        feature, session = found
        session.attached_count += 1
        session.status = SessionStatus.ACTIVE
        feature.status = FeatureStatus.ACTIVE
        self.save(state)
        return session
