"""Data models for the version locator engine."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class TrackedFile:
    """One version marker found in a release file.

    A file contributes one instance per pattern match, so a file whose
    pattern matches three times yields three tracked files.
    """

    absolute_path: str
    repo_relative_path: str  # forward-slash, relative to the workspace root
    raw_content: str
    match_pattern: re.Pattern[str]
    current_version_token: str
    matched_sha_pattern: re.Pattern[str] | None = None
    path_id: str | None = None
    current_version_sha: str | None = None
