"""Version resolver — decide the new version of every tracked file.

Precedence, first match wins:

1. a caller-supplied override for the repository (and pathId),
2. a tag matching the configured pattern that points exactly at head
   (tag schemes only),
3. the raw head commit SHA.

Under ``commit-tags-only`` step 3 is never used: without a tag at head the
repository is left alone until a release is tagged.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog

from gitops_automator.config import VersioningConfig, VersioningScheme
from gitops_automator.core.github_client import GitHubClient
from gitops_automator.engines.version_locator.models import TrackedFile
from gitops_automator.engines.version_resolver.models import (
    Resolution,
    ResolutionSource,
    SourceHead,
    VersionTransition,
)
from gitops_automator.overrides import OverrideVersion

log = structlog.get_logger("gitops_automator.engine")

DEFAULT_TAG_PATTERN = r"refs/tags/v\d+\.\d+\.\d+"
_TAG_PREFIX = "refs/tags/"

_TAG_SCHEMES = (VersioningScheme.COMMIT_TAGS_OR_SHA, VersioningScheme.COMMIT_TAGS_ONLY)


async def fetch_source_head(
    client: GitHubClient, repo: str, ref: str, versioning: VersioningConfig
) -> SourceHead:
    """Read the head SHA of *repo* at *ref* and, for tag schemes, its tags."""
    log.debug("resolver.fetch_head", repo=repo, ref=ref)
    ref_data = await client.get_ref(repo, ref)
    head_sha = ref_data["object"]["sha"]

    tags_by_sha: dict[str, list[str]] = {}
    if versioning.scheme in _TAG_SCHEMES:
        refs = await client.list_matching_refs(repo, "tags")
        tags_by_sha = index_tags(refs, versioning.resolve_tags_pattern)
        log.debug(
            "resolver.tags",
            repo=repo,
            head_sha=head_sha,
            suitable=len(tags_by_sha.get(head_sha, [])),
            total=len(refs),
        )
    return SourceHead(repo=repo, head_sha=head_sha, tags_by_sha=tags_by_sha)


def index_tags(refs: Iterable[Mapping[str, Any]], pattern: str | None = None) -> dict[str, list[str]]:
    """Group tag names matching *pattern* by the SHA they point at.

    The pattern is searched in the full ref name (``refs/tags/...``);
    listing order is preserved within each SHA.
    """
    tag_re = re.compile(pattern or DEFAULT_TAG_PATTERN)
    by_sha: dict[str, list[str]] = {}
    for ref in refs:
        name = ref.get("ref", "")
        sha = (ref.get("object") or {}).get("sha")
        if not sha or not tag_re.search(name):
            continue
        by_sha.setdefault(sha, []).append(name.removeprefix(_TAG_PREFIX))
    return by_sha


def find_override(
    overrides: Sequence[OverrideVersion], repo: str, path_id: str | None
) -> OverrideVersion | None:
    """Override for ``(repo, path_id)``; an override without pathId covers the whole repo."""
    for override in overrides:
        if override.repo == repo and override.path_id == path_id:
            return override
    if path_id is not None:
        for override in overrides:
            if override.repo == repo and override.path_id is None:
                return override
    return None


def resolve(
    tracked_file: TrackedFile,
    repo: str,
    head_sha: str,
    overrides: Sequence[OverrideVersion],
    tags_at_head_by_sha: Mapping[str, Sequence[str]],
    scheme: VersioningScheme,
) -> Resolution:
    """New ``(token, sha)`` for *tracked_file*, with the step that produced it."""
    override = find_override(overrides, repo, tracked_file.path_id)
    if override is not None:
        return Resolution(override.new_version, override.new_version_sha, ResolutionSource.OVERRIDE)

    if scheme in _TAG_SCHEMES:
        tags = tags_at_head_by_sha.get(head_sha) or ()
        if tags:
            return Resolution(tags[0], head_sha, ResolutionSource.TAG)

    return Resolution(head_sha, head_sha, ResolutionSource.SHA)


def find_transitions(
    tracked_files: Sequence[TrackedFile],
    head: SourceHead,
    overrides: Sequence[OverrideVersion],
    scheme: VersioningScheme,
) -> list[VersionTransition]:
    """Transitions for every tracked file whose resolved token differs."""
    transitions: list[VersionTransition] = []
    suppressed = 0
    for tracked in tracked_files:
        resolution = resolve(tracked, head.repo, head.head_sha, overrides, head.tags_by_sha, scheme)
        if scheme is VersioningScheme.COMMIT_TAGS_ONLY and resolution.source is ResolutionSource.SHA:
            suppressed += 1
            continue
        if resolution.token == tracked.current_version_token:
            continue
        transitions.append(
            VersionTransition(
                tracked_file=tracked,
                existing_version_token=tracked.current_version_token,
                existing_version_sha=tracked.current_version_sha,
                new_version_token=resolution.token,
                new_version_sha=resolution.sha,
            )
        )

    if suppressed:
        log.info("resolver.no_tag_at_head", repo=head.repo, head_sha=head.head_sha, skipped=suppressed)
    log.info(
        "resolver.current_version",
        repo=head.repo,
        head_sha=head.head_sha,
        tracked=len(tracked_files),
        transitions=len(transitions),
    )
    return transitions
