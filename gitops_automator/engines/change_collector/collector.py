"""Change collector — upstream commits explaining a set of version transitions.

Commit history is best-effort enrichment: transitions without both SHAs
contribute nothing and are not errors.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from gitops_automator.core.github import parse_datetime
from gitops_automator.core.github_client import GitHubClient
from gitops_automator.engines.change_collector.models import CommitRecord
from gitops_automator.engines.version_resolver.models import VersionTransition

log = structlog.get_logger("gitops_automator.engine")

# "#123": squash merges keep the PR number in the message
ISSUE_REF_PATTERN = re.compile(r"#\d+")

_COMPARE_MAX_PAGES = 50
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


async def collect_commits(
    client: GitHubClient,
    repo: str,
    transitions: Sequence[VersionTransition],
    *,
    only_merge_commits: bool = False,
) -> list[CommitRecord]:
    """Fetch ``existing..new`` for every transition of *repo*.

    Commits are deduplicated by SHA across transitions and returned newest
    first by author date (stable on fetch order for ties).
    """
    seen: dict[str, CommitRecord] = {}
    compared: set[tuple[str, str]] = set()
    for transition in transitions:
        base = transition.existing_version_sha
        head = transition.new_version_sha
        if not base or not head:
            log.debug(
                "collector.skip_transition",
                repo=repo,
                path=transition.tracked_file.repo_relative_path,
                base=base,
                head=head,
            )
            continue
        if (base, head) in compared:
            continue
        compared.add((base, head))

        async for item in client.compare_commits(repo, base, head, max_pages=_COMPARE_MAX_PAGES):
            if only_merge_commits and not is_merge_like(item):
                continue
            sha = item["sha"]
            if sha not in seen:
                seen[sha] = to_commit_record(item)

    commits = order_commits(list(seen.values()))
    log.info("collector.commits", repo=repo, transitions=len(transitions), commits=len(commits))
    return commits


def is_merge_like(item: Mapping[str, Any]) -> bool:
    """Two or more parents, or a message referencing an issue/PR (``#N``)."""
    if len(item.get("parents") or []) >= 2:
        return True
    message = (item.get("commit") or {}).get("message") or ""
    return ISSUE_REF_PATTERN.search(message) is not None


def to_commit_record(item: Mapping[str, Any]) -> CommitRecord:
    """Build a :class:`CommitRecord` from a GitHub commit payload."""
    commit = item.get("commit") or {}
    git_author = commit.get("author") or {}
    author_login = (item.get("author") or {}).get("login") or git_author.get("name")
    return CommitRecord(
        sha=item["sha"],
        message=commit.get("message", ""),
        author_login=author_login,
        author_date=parse_datetime(git_author.get("date")),
        parent_count=len(item.get("parents") or []),
        html_url=item.get("html_url"),
    )


def order_commits(commits: Sequence[CommitRecord]) -> list[CommitRecord]:
    """Newest first by author date; undated commits last; stable for ties."""
    return sorted(commits, key=lambda c: c.author_date or _OLDEST, reverse=True)
