from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from maestro import sessions
from maestro.errors import SessionBuildError
from maestro.models import Layout, SessionSpec
from maestro.rollback import RollbackLedger


class FakeTmux:
    def __init__(self, *, existing: set[str] | None = None, fail_on: str | None = None) -> None:
        self.live: dict[str, int] = {name: 1 for name in (existing or set())}
        self.fail_on = fail_on
        self.calls: list[tuple] = []

    def _maybe_fail(self, op: str) -> None:
        if self.fail_on == op:
            raise subprocess.CalledProcessError(1, ["tmux", op], stderr=f"{op} failed")

    async def has_session(self, name: str) -> bool:
        return name in self.live

    async def new_session(self, name: str, *, cwd: Path, shell: str) -> None:
        self.calls.append(("new_session", name, cwd))
        self._maybe_fail("new-session")
        self.live[name] = 1

    async def split_window(self, target: str, *, cwd: Path, shell: str, flag: str) -> None:
        self.calls.append(("split_window", target, flag))
        self._maybe_fail("split-window")
        self.live[target] += 1

    async def select_layout(self, target: str, layout: str) -> None:
        self.calls.append(("select_layout", target, layout))

    async def rename_window(self, target: str, name: str) -> None:
        self.calls.append(("rename_window", target, name))

    async def list_panes(self, target: str) -> list[str]:
        return [f"%{i}" for i in range(self.live[target])]

    async def send_interrupt(self, pane: str) -> None:
        self.calls.append(("send_interrupt", pane))

    async def send_literal(self, pane: str, text: str) -> None:
        self.calls.append(("send_literal", pane, text))
        self._maybe_fail("send-keys")

    async def kill_session(self, name: str) -> None:
        self.calls.append(("kill_session", name))
        self.live.pop(name, None)

    def ops(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


def test_session_name_sanitizes_and_truncates() -> None:
    assert sessions.session_name("auth", "backend") == "auth-backend"
    assert sessions.session_name("auth_v2", "api server") == "auth-v2-api-server"
    long = sessions.session_name("a" * 25, "backend")
    assert len(long) == 30
    assert long == "a" * 25 + "-back"


@pytest.mark.parametrize(
    ("layout", "expected"),
    [
        (None, ["-v", "-h", "-v"]),
        (Layout.TILED, ["-v", "-h", "-v"]),
        (Layout.EVEN_HORIZONTAL, ["-h", "-h", "-h"]),
        (Layout.MAIN_VERTICAL, ["-v", "-v", "-v"]),
    ],
)
def test_split_flag_orientation(layout: Layout | None, expected: list[str]) -> None:
    spec = SessionSpec(name="dev", panes=4, layout=layout)

    assert [sessions.split_flag(spec, i) for i in range(1, 4)] == expected


@pytest.mark.asyncio
async def test_build_session_creates_panes_layout_and_window_name(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("MAESTRO_PANE_SHELL", "/bin/sh")
    fake = FakeTmux()
    ledger = RollbackLedger()
    spec = SessionSpec(name="dev", panes=4, layout=Layout.TILED)

    sid = await sessions.build_session(fake, feature_name="auth", session=spec, work_dir=tmp_path, ledger=ledger)

    assert sid == "auth-dev"
    assert fake.live["auth-dev"] == 4
    assert len(fake.ops("split_window")) == 3
    assert [flag for _, _, flag in fake.ops("split_window")] == ["-v", "-h", "-v"]
    assert fake.ops("select_layout") == [("select_layout", "auth-dev", "tiled")]
    assert fake.ops("rename_window") == [("rename_window", "auth-dev", "dev")]
    assert [(e.kind, e.target) for e in ledger.entries] == [("session", "auth-dev")]


@pytest.mark.asyncio
async def test_build_session_without_layout_skips_select_layout(tmp_path: Path) -> None:
    fake = FakeTmux()

    await sessions.build_session(fake, feature_name="api", session=SessionSpec(name="dev"), work_dir=tmp_path)

    assert fake.ops("split_window") == []
    assert fake.ops("select_layout") == []


@pytest.mark.asyncio
async def test_build_session_is_idempotent(tmp_path: Path) -> None:
    fake = FakeTmux()
    ledger = RollbackLedger()
    spec = SessionSpec(name="dev", panes=3)

    first = await sessions.build_session(fake, feature_name="auth", session=spec, work_dir=tmp_path, ledger=ledger)
    second = await sessions.build_session(fake, feature_name="auth", session=spec, work_dir=tmp_path, ledger=ledger)

    assert first == second == "auth-dev"
    assert len(fake.ops("new_session")) == 1
    assert len(fake.ops("split_window")) == 2
    assert fake.live["auth-dev"] == 3
    assert len(ledger) == 1


@pytest.mark.asyncio
async def test_build_session_failure_after_creation_keeps_ledger_entry(tmp_path: Path) -> None:
    fake = FakeTmux(fail_on="split-window")
    ledger = RollbackLedger()

    with pytest.raises(SessionBuildError) as exc:
        await sessions.build_session(
            fake, feature_name="auth", session=SessionSpec(name="dev", panes=2), work_dir=tmp_path, ledger=ledger
        )

    assert exc.value.stage == "session_building"
    assert exc.value.session == "auth-dev"
    assert "split-window failed" in str(exc.value)
    assert [e.target for e in ledger.entries] == ["auth-dev"]


@pytest.mark.asyncio
async def test_inject_prompts_maps_by_pane_index_and_never_submits(tmp_path: Path) -> None:
    fake = FakeTmux()
    await sessions.build_session(
        fake, feature_name="auth", session=SessionSpec(name="dev", panes=3), work_dir=tmp_path
    )
    fake.calls.clear()

    await sessions.inject_prompts(fake, session_id="auth-dev", prompts=["npm run dev", "npm test"], settle=0)

    assert fake.calls == [
        ("send_interrupt", "%0"),
        ("send_literal", "%0", "npm run dev"),
        ("send_interrupt", "%1"),
        ("send_literal", "%1", "npm test"),
    ]
    assert all("Enter" not in call for call in fake.calls)


@pytest.mark.asyncio
async def test_inject_prompts_skips_empty_and_extra_prompts(tmp_path: Path) -> None:
    fake = FakeTmux()
    await sessions.build_session(
        fake, feature_name="auth", session=SessionSpec(name="dev", panes=2), work_dir=tmp_path
    )
    fake.calls.clear()

    await sessions.inject_prompts(fake, session_id="auth-dev", prompts=["", "second", "ignored"], settle=0)

    assert fake.calls == [("send_interrupt", "%1"), ("send_literal", "%1", "second")]


@pytest.mark.asyncio
async def test_inject_prompts_without_prompts_does_nothing() -> None:
    fake = FakeTmux()

    await sessions.inject_prompts(fake, session_id="missing", prompts=[], settle=0)

    assert fake.calls == []


@pytest.mark.asyncio
async def test_inject_prompts_wraps_failures(tmp_path: Path) -> None:
    fake = FakeTmux(fail_on="send-keys")
    await sessions.build_session(fake, feature_name="auth", session=SessionSpec(name="dev"), work_dir=tmp_path)

    with pytest.raises(SessionBuildError, match="inject prompts"):
        await sessions.inject_prompts(fake, session_id="auth-dev", prompts=["x"], settle=0)
