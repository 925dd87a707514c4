"""Change collector engine — deduplicated upstream commit history."""

from gitops_automator.engines.change_collector.collector import (
    ISSUE_REF_PATTERN,
    collect_commits,
    is_merge_like,
    order_commits,
    to_commit_record,
)
from gitops_automator.engines.change_collector.models import (
    CommitRecord,
    ReconciliationResult,
    SourceRepoChanges,
)

__all__ = [
    "ISSUE_REF_PATTERN",
    "CommitRecord",
    "ReconciliationResult",
    "SourceRepoChanges",
    "collect_commits",
    "is_merge_like",
    "order_commits",
    "to_commit_record",
]
