"""Data models for the version resolver engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from gitops_automator.engines.version_locator.models import TrackedFile


class ResolutionSource(Enum):
    """Which precedence step produced a new version."""

    OVERRIDE = "override"
    TAG = "tag"
    SHA = "sha"


@dataclass(frozen=True)
class Resolution:
    token: str
    sha: str | None
    source: ResolutionSource


@dataclass(frozen=True)
class VersionTransition:
    """A tracked file whose version token must change.

    Only ever built when ``existing_version_token != new_version_token``.
    """

    tracked_file: TrackedFile
    existing_version_token: str
    new_version_token: str
    existing_version_sha: str | None = None
    new_version_sha: str | None = None


@dataclass
class SourceHead:
    """Upstream state of a source repository at its tracked ref."""

    repo: str
    head_sha: str
    # tag names (refs/tags/ stripped) matching the tag pattern, keyed by target sha
    tags_by_sha: dict[str, list[str]] = field(default_factory=dict)
