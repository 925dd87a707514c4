"""Rendering and writing of updated release files."""

from __future__ import annotations

import base64
from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from gitops_automator.core.github_client import GitHubClient
from gitops_automator.engines.reconciler.models import PlannedWrite
from gitops_automator.engines.version_resolver.models import VersionTransition

log = structlog.get_logger("gitops_automator.engine")


def render_file_updates(transitions: Sequence[VersionTransition]) -> dict[str, str]:
    """New content per repository-relative path.

    Substitutions are applied in transition order on the accumulated
    content of each path, so a later transition touching the same path wins.
    """
    contents: dict[str, str] = {}
    for transition in transitions:
        tracked = transition.tracked_file
        path = tracked.repo_relative_path
        content = contents.get(path, tracked.raw_content)

        new_token = transition.new_version_token
        content = tracked.match_pattern.sub(lambda _m: new_token, content)

        new_sha = transition.new_version_sha
        if tracked.matched_sha_pattern is not None and new_sha:
            content = tracked.matched_sha_pattern.sub(lambda _m: new_sha, content)

        contents[path] = content
    return contents


def encode_content(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def content_matches(existing: Mapping[str, Any], encoded: str) -> bool:
    """Compare against the platform's base64 blob, which is wrapped with newlines."""
    return (existing.get("content") or "").replace("\n", "") == encoded


async def plan_writes(
    client: GitHubClient, repo: str, updates: Mapping[str, str], ref: str
) -> tuple[list[PlannedWrite], list[str]]:
    """Split *updates* into writes needed on *ref* and paths already up to date."""
    writes: list[PlannedWrite] = []
    skipped: list[str] = []
    for path, content in updates.items():
        encoded = encode_content(content)
        existing = await client.get_file_content(repo, path, ref)
        if existing is not None and content_matches(existing, encoded):
            log.info("reconciler.file_unchanged", path=path, ref=ref)
            skipped.append(path)
            continue
        writes.append(
            PlannedWrite(
                path=path,
                content_b64=encoded,
                blob_sha=existing.get("sha") if existing is not None else None,
            )
        )
    return writes, skipped


async def apply_writes(
    client: GitHubClient,
    repo: str,
    branch: str,
    writes: Sequence[PlannedWrite],
    *,
    title: str,
    committer: dict[str, str] | None = None,
) -> list[str]:
    """One content-replace call per planned write; returns the written paths."""
    written: list[str] = []
    for write in writes:
        await client.create_or_update_file_content(
            repo,
            write.path,
            branch=branch,
            content_b64=write.content_b64,
            message=f"{title} ({write.path})",
            sha=write.blob_sha,
            committer=committer,
        )
        log.info("reconciler.file_written", path=write.path, branch=branch)
        written.append(write.path)
    return written
