"""Summary rendering — pull-request description plus markdown/JSON artifacts."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import structlog

from gitops_automator.config import ArtifactsConfig
from gitops_automator.engines.change_collector.models import (
    CommitRecord,
    ReconciliationResult,
    SourceRepoChanges,
)

log = structlog.get_logger("gitops_automator.engine")

# "#123" not already qualified by "owner/repo"
_BARE_REF_RE = re.compile(r"(?<![\w/.-])#(\d+)\b")


def resolve_pr_refs(text: str, source_repo: str) -> str:
    """Qualify bare ``#N`` references so they link to *source_repo*."""
    return _BARE_REF_RE.sub(lambda m: f"{source_repo}#{m.group(1)}", text)


def display_repo(source_repo: str, include_owner: bool) -> str:
    if include_owner:
        return source_repo
    return source_repo.rsplit("/", 1)[-1]


def render_pull_request_body(
    result: ReconciliationResult, title: str, *, include_owner: bool = False
) -> str:
    """Markdown description for the automator pull request."""
    lines = [f"# {title}", ""]
    for changes in result.per_source_repo:
        if not changes.transitions:
            continue
        lines.extend(_render_repo_section(changes, include_owner, heading="##"))
    return "\n".join(lines).rstrip() + "\n"


def render_summary_markdown(result: ReconciliationResult) -> str:
    lines = ["# Summary of Changes", ""]
    for changes in result.per_source_repo:
        lines.extend(_render_repo_section(changes, True, heading="##"))
    return "\n".join(lines).rstrip() + "\n"


def render_summary_json(result: ReconciliationResult) -> str:
    return json.dumps([_repo_to_dict(changes) for changes in result.per_source_repo], indent=2)


def write_artifacts(
    result: ReconciliationResult, artifacts: ArtifactsConfig | None, root: Path
) -> list[Path]:
    """Write the configured summary artifacts; returns the written paths."""
    if artifacts is None:
        return []
    written: list[Path] = []
    targets = (
        (artifacts.summary_markdown_as, render_summary_markdown),
        (artifacts.summary_json_as, render_summary_json),
    )
    for target, render in targets:
        if not target:
            continue
        path = root / target
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render(result), encoding="utf-8")
        log.info("summary.artifact_written", path=str(path))
        written.append(path)
    return written


# ── helpers ───────────────────────────────────────────────────────────────


def _render_repo_section(
    changes: SourceRepoChanges, include_owner: bool, *, heading: str
) -> list[str]:
    lines = [f"{heading} {display_repo(changes.source_repo, include_owner)}", ""]
    lines.append(f"{heading}# Version")
    lines.append("")
    for transition in changes.transitions:
        lines.append(
            f"- `{transition.tracked_file.repo_relative_path}`: "
            f"`{transition.existing_version_token}` -> `{transition.new_version_token}`"
        )
    lines.append("")
    if changes.commits:
        lines.append(f"{heading}# Commits")
        lines.append("")
        lines.extend(_render_commit(commit, changes.source_repo) for commit in changes.commits)
        lines.append("")
    return lines


def _render_commit(commit: CommitRecord, source_repo: str) -> str:
    short_sha = f"`{commit.sha[:8]}`"
    link = f"[{short_sha}]({commit.html_url})" if commit.html_url else short_sha
    line = f"- {link} {resolve_pr_refs(commit.title, source_repo)}"
    if commit.author_login:
        line += f" by @{commit.author_login}"
    return line


def _repo_to_dict(changes: SourceRepoChanges) -> dict[str, Any]:
    return {
        "sourceRepo": changes.source_repo,
        "transitions": [
            {
                "path": t.tracked_file.repo_relative_path,
                "pathId": t.tracked_file.path_id,
                "existingVersion": t.existing_version_token,
                "existingVersionSha": t.existing_version_sha,
                "newVersion": t.new_version_token,
                "newVersionSha": t.new_version_sha,
            }
            for t in changes.transitions
        ],
        "commits": [
            {
                "sha": c.sha,
                "message": c.message,
                "authorLogin": c.author_login,
                "authorDate": c.author_date.isoformat() if c.author_date else None,
                "parentCount": c.parent_count,
                "htmlUrl": c.html_url,
            }
            for c in changes.commits
        ],
    }
