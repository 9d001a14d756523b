from __future__ import annotations

import pytest

from maestro.models import (
    ContextMode,
    FeatureSpec,
    FeatureStatus,
    Layout,
    OrchestraSettings,
    OrchestraState,
    OrchestraStatus,
    SessionSpec,
    SessionStatus,
    max_panes,
)


def test_layout_split_flags() -> None:
    assert Layout.EVEN_HORIZONTAL.split_flag() == "-h"
    assert Layout.MAIN_HORIZONTAL.split_flag() == "-h"
    assert Layout.EVEN_VERTICAL.split_flag() == "-v"
    assert Layout.MAIN_VERTICAL.split_flag() == "-v"
    assert Layout.TILED.split_flag() is None


def test_max_panes_depends_on_layout() -> None:
    assert max_panes(Layout.EVEN_HORIZONTAL) == 10
    assert max_panes(Layout.MAIN_VERTICAL) == 15
    assert max_panes(Layout.TILED) == 30
    assert max_panes(None) == 30


def test_session_spec_from_dict_defaults() -> None:
    s = SessionSpec.from_dict({"name": "backend"})

    assert s == SessionSpec(name="backend", panes=1, layout=None, prompts=[])


def test_session_spec_from_dict_parses_layout_and_prompts() -> None:
    s = SessionSpec.from_dict({"name": "dev", "panes": "3", "layout": "tiled", "prompts": ["npm run dev", 42]})

    assert s.panes == 3
    assert s.layout == Layout.TILED
    assert s.prompts == ["npm run dev", "42"]
    assert s.to_dict() == {"name": "dev", "panes": 3, "layout": "tiled", "prompts": ["npm run dev", "42"]}


@pytest.mark.parametrize(
    ("data", "match"),
    [
        ({"panes": 2}, "missing required field: name"),
        ({"name": "x", "panes": 0}, "between 1 and 30"),
        ({"name": "x", "panes": 11, "layout": "even-horizontal"}, "between 1 and 10"),
        ({"name": "x", "panes": 16, "layout": "main-vertical"}, "between 1 and 15"),
        ({"name": "x", "panes": "many"}, "must be an integer"),
        ({"name": "x", "layout": "diagonal"}, "unknown layout"),
    ],
)
def test_session_spec_from_dict_rejects_invalid(data: dict, match: str) -> None:
    with pytest.raises(ValueError, match=match):
        SessionSpec.from_dict(data)


def test_feature_spec_accepts_plan_file_aliases() -> None:
    f = FeatureSpec.from_dict(
        {
            "feature": "auth",
            "description": "Login",
            "claude_context": "Use JWT.",
            "dependencies": ["db", "db", "cache"],
            "agents": "reviewer",
            "branch_prefix": "feat/",
        }
    )

    assert f.name == "auth"
    assert f.context == "Use JWT."
    assert f.dependencies == ["db", "cache"]
    assert f.agents == ["reviewer"]
    assert f.base is None
    assert f.branch == "feat/auth"


@pytest.mark.parametrize("name", ["", "has space", "dots.in.name", "slash/name"])
def test_feature_spec_rejects_bad_names(name: str) -> None:
    with pytest.raises(ValueError, match="feature name"):
        FeatureSpec.from_dict({"name": name})


def test_feature_spec_rejects_duplicate_session_names() -> None:
    with pytest.raises(ValueError, match="duplicate session name 'dev'"):
        FeatureSpec.from_dict({"name": "auth", "sessions": [{"name": "dev"}, {"name": "dev"}]})


def test_settings_from_dict_reads_plan_keys() -> None:
    s = OrchestraSettings.from_dict(
        {"parallel_creation": False, "auto_install_deps": False, "claude_md_mode": "shared", "base_branch": "develop"}
    )

    assert s == OrchestraSettings(
        base_branch="develop", parallel=False, context_mode=ContextMode.SHARED, install_deps=False
    )
    assert OrchestraSettings.from_dict(None) == OrchestraSettings()


def test_settings_from_dict_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError, match="context mode"):
        OrchestraSettings.from_dict({"claude_md_mode": "merged"})


def test_state_round_trip_preserves_unknown_keys() -> None:
    raw = {
        "created_at": "2026-01-01T00:00:00+00:00",
        "status": "active",
        "owner": "ops",
        "features": [
            {
                "feature": "auth",
                "worktree_path": "/repo/.worktrees/auth",
                "status": "created",
                "created_at": "2026-01-01T00:00:00+00:00",
                "sessions": [
                    {
                        "name": "backend",
                        "session_name": "auth-backend",
                        "panes": 2,
                        "status": "created",
                        "attached_count": 0,
                        "note": "keep",
                    }
                ],
            }
        ],
    }

    state = OrchestraState.from_dict(raw)

    assert state.status == OrchestraStatus.ACTIVE
    assert state.features[0].status == FeatureStatus.CREATED
    assert state.features[0].sessions[0].status == SessionStatus.CREATED
    assert state.to_dict() == raw


def test_state_unknown_status_falls_back_to_initial() -> None:
    state = OrchestraState.from_dict({"created_at": "t", "status": "exploded", "features": []})

    assert state.status == OrchestraStatus.PLANNING


def test_state_find_session() -> None:
    state = OrchestraState.from_dict(
        {
            "created_at": "t",
            "features": [
                {"feature": "a", "sessions": [{"name": "s1", "session_name": "a-s1", "panes": 1}]},
                {"feature": "b", "sessions": [{"name": "s2", "session_name": "b-s2", "panes": 3}]},
            ],
        }
    )

    found = state.find_session("b-s2")
    assert found is not None
    feature, session = found
    assert feature.feature == "b"
    assert session.panes == 3
    assert state.find_session("c-s3") is None
    assert [s.session_name for _, s in state.sessions()] == ["a-s1", "b-s2"]


@pytest.mark.parametrize(
    ("raw", "match"),
    [
        ({"features": [{"worktree_path": "/w"}]}, "state feature is missing required field: feature"),
        (
            {"features": [{"feature": "a", "sessions": [{"name": "s1", "panes": 1}]}]},
            "state session is missing required field: session_name",
        ),
        (
            {"features": [{"feature": "a", "sessions": [{"session_name": "a-s1"}]}]},
            "state session is missing required field: name",
        ),
    ],
)
def test_state_from_dict_names_missing_required_field(raw: dict, match: str) -> None:
    with pytest.raises(ValueError, match=match):
        OrchestraState.from_dict({"created_at": "t", **raw})
