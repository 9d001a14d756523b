"""Plan loading for maestro (`MAESTRO.yml`).

A plan file describes the features to orchestrate and a few global settings:

    version: "1.0"
    description: Checkout rewrite
    orchestra:
      - feature: auth
        description: Session-based login
        base: main
        sessions:
          - name: backend
            panes: 2
            layout: even-horizontal
            prompts: ["npm run dev", "npm test -- --watch"]
        claude_context: |
          Use the existing session middleware.
        agents: [reviewer]
      - feature: api
        dependencies: [auth]
    settings:
      parallel_creation: true
      auto_install_deps: true
      claude_md_mode: split
      base_branch: main

`.yml`/`.yaml` files are parsed with `yaml.safe_load`; anything else is read as JSON. `features` is
accepted as an alias of `orchestra`. Field-level validation lives in `maestro.models`; this module
adds the document-level checks (top-level shape, duplicate feature names) and names the file in
every error.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .models import FeatureSpec, OrchestraPlan, OrchestraSettings

DEFAULT_PLAN_FILENAME = "MAESTRO.yml"


def _read_document(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yml", ".yaml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"{path}: invalid YAML: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path}: invalid JSON: {exc}") from exc


def load_plan(path: Path) -> OrchestraPlan:
    if not path.exists():
        raise FileNotFoundError(f"Plan file not found: {path}")

    raw = _read_document(path)
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: plan must be a mapping, got {type(raw).__name__}")

    entries = raw.get("orchestra", raw.get("features")) or []
    if not isinstance(entries, list):
        raise ValueError(f"{path}: 'orchestra' must be a list of features")

    features: dict[str, FeatureSpec] = {}
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: feature #{i + 1} must be a mapping")
        try:
            feature = FeatureSpec.from_dict(entry)
        except ValueError as exc:
            raise ValueError(f"{path}: {exc}") from exc
        if feature.name in features:
            raise ValueError(f"{path}: duplicate feature name {feature.name!r}")
        features[feature.name] = feature

    settings_raw = raw.get("settings")
    if settings_raw is not None and not isinstance(settings_raw, dict):
        raise ValueError(f"{path}: 'settings' must be a mapping")
    try:
        settings = OrchestraSettings.from_dict(settings_raw)
    except ValueError as exc:
        raise ValueError(f"{path}: {exc}") from exc

    description = raw.get("description")
    return OrchestraPlan(
        features=features,
        settings=settings,
        description=(str(description) if description is not None else None),
    )
