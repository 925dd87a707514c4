"""Data models for the change collector engine and the cycle result."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from gitops_automator.engines.version_resolver.models import VersionTransition


@dataclass(frozen=True)
class CommitRecord:
    """An upstream commit explaining a version transition."""

    sha: str
    message: str
    author_login: str | None
    author_date: datetime | None
    parent_count: int
    html_url: str | None

    @property
    def title(self) -> str:
        return self.message.split("\n", 1)[0]


@dataclass
class SourceRepoChanges:
    """Everything a cycle found for one source repository."""

    source_repo: str
    transitions: list[VersionTransition]
    commits: list[CommitRecord] = field(default_factory=list)


@dataclass
class ReconciliationResult:
    """Merged result of all source repositories for one cycle."""

    per_source_repo: list[SourceRepoChanges] = field(default_factory=list)

    @property
    def transitions(self) -> list[VersionTransition]:
        return [t for changes in self.per_source_repo for t in changes.transitions]

    @property
    def has_changes(self) -> bool:
        return any(changes.transitions for changes in self.per_source_repo)

    def repos(self) -> list[str]:
        return [changes.source_repo for changes in self.per_source_repo if changes.transitions]
