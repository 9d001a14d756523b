"""Per-worktree CLAUDE.md context for orchestrated features.

`render_context(feature)` builds an "Orchestration Context" Markdown section:
- feature name and description,
- the feature's `context` text, copied verbatim,
- one entry per session with its pane count and the first line of each prompt,
- the assigned agents and the dependency list, each only when non-empty.

`annotate(feature, work_dir, mode)` writes it to `<work_dir>/CLAUDE.md`:
- `split`: the file is replaced by a full document (title, context section, guidelines stub);
- `shared`: the section is appended to whatever the file already holds (the file is created when
  missing). The existing file is never parsed.
"""

from __future__ import annotations

from pathlib import Path

from .models import ContextMode, FeatureSpec

CONTEXT_FILENAME = "CLAUDE.md"


def render_context(feature: FeatureSpec) -> str:
    lines: list[str] = []
    lines.append("")
    lines.append("## Orchestration Context")
    lines.append("")
    lines.append("This worktree is part of an orchestrated development plan.")
    lines.append("")
    lines.append(f"**Feature**: {feature.name}")
    lines.append(f"**Description**: {feature.description}")
    lines.append("")

    if feature.context:
        lines.append(feature.context.rstrip("\n"))
        lines.append("")

    if feature.sessions:
        lines.append("### Sessions and Tasks")
        lines.append("")
        for session in feature.sessions:
            lines.append(f"- **{session.name}** ({session.panes} panes):")
            for i, prompt in enumerate(session.prompts[: session.panes]):
                first = prompt.splitlines()[0] if prompt else ""
                lines.append(f"  - Pane {i}: {first}")
        lines.append("")

    if feature.agents:
        lines.append("### Assigned Agents")
        lines.append("")
        for agent in feature.agents:
            lines.append(f"- {agent}")
        lines.append("")
        lines.append("Use these agents via the /agents command when appropriate.")
        lines.append("")

    if feature.dependencies:
        lines.append("### Dependencies")
        lines.append("")
        lines.append(f"This feature depends on: {', '.join(feature.dependencies)}")
        lines.append("Ensure these are completed first or coordinate with their implementations.")
        lines.append("")

    lines.append("---")
    lines.append("*See MAESTRO.yml in the main branch for the complete orchestration plan.*")
    return "\n".join(lines) + "\n"


def annotate(feature: FeatureSpec, work_dir: Path, mode: ContextMode = ContextMode.SPLIT) -> Path:
    path = work_dir / CONTEXT_FILENAME
    section = render_context(feature)

    if mode == ContextMode.SPLIT:
        doc = (
            f"# {feature.name} - Claude Code Instructions\n"
            + section
            + "\n## Implementation Guidelines\n\nAdd your specific implementation notes here.\n"
        )
        path.write_text(doc, encoding="utf-8")
        return path

    with path.open("ab") as fh:
        fh.write(section.encode("utf-8"))
    return path
