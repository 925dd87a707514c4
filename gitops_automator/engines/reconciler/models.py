"""Data models for the reconciler engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from gitops_automator.core.github import parse_datetime


class ReconcileState(Enum):
    """States of one reconciliation cycle.

    NO_CHANGE → (terminal)
    EVALUATING → REUSE_EXISTING | RETIRE_AND_CREATE → CONVERGED (terminal)
    """

    NO_CHANGE = "no_change"
    EVALUATING = "evaluating"
    REUSE_EXISTING = "reuse_existing"
    RETIRE_AND_CREATE = "retire_and_create"
    CONVERGED = "converged"


@dataclass(frozen=True)
class PullRequestRef:
    """Identity of the created/updated pull request, surfaced to the caller."""

    url: str
    number: int
    id: int
    node_id: str | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> PullRequestRef:
        return cls(
            url=item.get("html_url", ""),
            number=item["number"],
            id=item["id"],
            node_id=item.get("node_id"),
        )


@dataclass(frozen=True)
class OpenPullRequest:
    """An open automator pull request as listed by the platform."""

    ref: PullRequestRef
    head_ref: str
    base_ref: str
    created_at: datetime | None
    body: str | None = None

    @property
    def number(self) -> int:
        return self.ref.number

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> OpenPullRequest:
        return cls(
            ref=PullRequestRef.from_api(item),
            head_ref=item["head"]["ref"],
            base_ref=item["base"]["ref"],
            created_at=parse_datetime(item.get("created_at")),
            body=item.get("body"),
        )


@dataclass(frozen=True)
class PlannedWrite:
    """A file whose content on the comparison ref differs from the rendered one."""

    path: str
    content_b64: str
    blob_sha: str | None  # None when the file does not exist on the ref yet


@dataclass
class ReconcileOutcome:
    """What a reconciliation cycle did to the owning repository."""

    state: ReconcileState
    decision: ReconcileState | None = None
    states: list[ReconcileState] = field(default_factory=list)  # path taken, first to terminal
    pull_request: PullRequestRef | None = None
    branch: str | None = None
    written_paths: list[str] = field(default_factory=list)
    skipped_paths: list[str] = field(default_factory=list)
    closed_pulls: list[int] = field(default_factory=list)
    deleted_branches: list[str] = field(default_factory=list)
