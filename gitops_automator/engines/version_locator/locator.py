"""Version locator — find version markers in release files (read-only)."""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Sequence
from pathlib import Path

import structlog

from gitops_automator.config import ReleaseFileConfig
from gitops_automator.engines.version_locator.models import TrackedFile
from gitops_automator.exceptions import VersionLocatorError

log = structlog.get_logger("gitops_automator.engine")


def locate(
    root: Path,
    release_files: Sequence[ReleaseFileConfig],
    *,
    default_regex: Sequence[str] = (),
    default_sha_regex: Sequence[str] = (),
) -> list[TrackedFile]:
    """Scan *release_files* under *root* and return every version marker found.

    Each rule's regexes are tried in order, each yielding zero or more
    matches (multiline mode).  The first SHA regex that matches the whole
    file supplies the current SHA; without SHA regexes the version token
    itself is taken as the SHA.  Unreadable files raise
    :class:`VersionLocatorError`: partial version information is unsafe.
    """
    root = root.resolve()
    results: list[TrackedFile] = []
    for rule in release_files:
        regexes = rule.regex if rule.regex is not None else list(default_regex)
        sha_regexes = (
            rule.github_sha_regex if rule.github_sha_regex is not None else list(default_sha_regex)
        )
        patterns = [re.compile(r, re.MULTILINE) for r in regexes]
        sha_patterns = [re.compile(r, re.MULTILINE) for r in sha_regexes]
        log.debug(
            "locator.rule",
            path=rule.path,
            regex=regexes,
            sha_regex=sha_regexes,
            path_id=rule.id,
        )

        for file_path in expand_glob(root, rule.path):
            rel_path = to_repo_relative(root, file_path)
            if rule.ignore and fnmatch.fnmatch(rel_path, rule.ignore):
                log.debug("locator.ignored", path=rel_path, ignore=rule.ignore)
                continue
            content = _read(file_path)
            results.extend(
                _match_file(file_path, rel_path, content, patterns, sha_patterns, rule.id)
            )
    return results


def _match_file(
    file_path: Path,
    rel_path: str,
    content: str,
    patterns: list[re.Pattern[str]],
    sha_patterns: list[re.Pattern[str]],
    path_id: str | None,
) -> list[TrackedFile]:
    found: list[TrackedFile] = []
    for pattern in patterns:
        for match in pattern.finditer(content):
            version = match.group(0).strip()
            if not version:
                continue

            if sha_patterns:
                version_sha, sha_pattern = find_sha(content, sha_patterns)
            else:
                version_sha, sha_pattern = version, None

            log.debug(
                "locator.found_version",
                path=rel_path,
                version=version,
                sha=version_sha,
                path_id=path_id,
            )
            found.append(
                TrackedFile(
                    absolute_path=str(file_path),
                    repo_relative_path=rel_path,
                    raw_content=content,
                    match_pattern=pattern,
                    matched_sha_pattern=sha_pattern,
                    path_id=path_id,
                    current_version_token=version,
                    current_version_sha=version_sha,
                )
            )
    return found


def find_sha(
    content: str, sha_patterns: Sequence[re.Pattern[str]]
) -> tuple[str | None, re.Pattern[str] | None]:
    """First non-blank match of the first SHA pattern that matches *content*."""
    for sha_pattern in sha_patterns:
        match = sha_pattern.search(content)
        if match and match.group(0).strip():
            return match.group(0).strip(), sha_pattern
    return None, None


def expand_glob(root: Path, pattern: str) -> list[Path]:
    """Expand *pattern* relative to *root* (absolute patterns are honoured)."""
    pattern_path = Path(pattern)
    if pattern_path.is_absolute():
        base = Path(pattern_path.anchor)
        relative = str(pattern_path.relative_to(base))
    else:
        base, relative = root, pattern
    return sorted(hit for hit in base.glob(relative) if hit.is_file())


def to_repo_relative(root: Path, file_path: Path) -> str:
    """Repository-relative, forward-slash form of *file_path*."""
    try:
        return file_path.resolve().relative_to(root).as_posix()
    except ValueError:
        return file_path.as_posix().lstrip("/")


def _read(file_path: Path) -> str:
    try:
        return file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise VersionLocatorError(str(file_path), str(exc)) from exc
