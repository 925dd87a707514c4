"""Caller-supplied version overrides (``repo[:pathId]=version,sha;...``)."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

log = structlog.get_logger("gitops_automator.engine")


@dataclass(frozen=True)
class OverrideVersion:
    """A forced new version for a source repository (optionally one pathId)."""

    repo: str
    new_version: str
    new_version_sha: str | None = None
    path_id: str | None = None


def parse_override_versions(text: str | None) -> list[OverrideVersion]:
    """Parse ``repo[:pathId]=version,sha;repo2=version2,sha2``.

    Entries without exactly one ``=`` are ignored.  An empty pathId means
    "no pathId"; a missing sha yields ``None``.
    """
    result: list[OverrideVersion] = []
    if not text:
        return result
    for entry in text.split(";"):
        parts = entry.split("=")
        if len(parts) != 2:
            if entry.strip():
                log.warning("overrides.malformed_entry", entry=entry.strip())
            continue
        repo_with_path, version_with_sha = parts
        repo, _, path_id = repo_with_path.strip().partition(":")
        version, _, sha = version_with_sha.strip().partition(",")
        if not repo or not version.strip():
            log.warning("overrides.malformed_entry", entry=entry.strip())
            continue
        result.append(
            OverrideVersion(
                repo=repo.strip(),
                path_id=path_id.strip() or None,
                new_version=version.strip(),
                new_version_sha=sha.strip() or None,
            )
        )
    return result


def warn_unknown_repos(overrides: Iterable[OverrideVersion], known_repos: Iterable[str]) -> list[OverrideVersion]:
    """Log overrides that name an unconfigured repository; return them."""
    known = set(known_repos)
    unknown = [override for override in overrides if override.repo not in known]
    for override in unknown:
        log.warning(
            "overrides.unknown_repo",
            repo=override.repo,
            path_id=override.path_id,
            version=override.new_version,
        )
    return unknown
