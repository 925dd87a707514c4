"""Reconciler engine — idempotent branch/pull-request lifecycle."""

from gitops_automator.engines.reconciler.files import (
    content_matches,
    encode_content,
    plan_writes,
    render_file_updates,
)
from gitops_automator.engines.reconciler.models import (
    OpenPullRequest,
    PlannedWrite,
    PullRequestRef,
    ReconcileOutcome,
    ReconcileState,
)
from gitops_automator.engines.reconciler.reconciler import Reconciler

__all__ = [
    "OpenPullRequest",
    "PlannedWrite",
    "PullRequestRef",
    "ReconcileOutcome",
    "ReconcileState",
    "Reconciler",
    "content_matches",
    "encode_content",
    "plan_writes",
    "render_file_updates",
]
