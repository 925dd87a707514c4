"""Summary renderer — human- and machine-readable views of a cycle result."""

from gitops_automator.engines.summary.render import (
    display_repo,
    render_pull_request_body,
    render_summary_json,
    render_summary_markdown,
    resolve_pr_refs,
    write_artifacts,
)

__all__ = [
    "display_repo",
    "render_pull_request_body",
    "render_summary_json",
    "render_summary_markdown",
    "resolve_pr_refs",
    "write_artifacts",
]
