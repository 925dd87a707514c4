"""GitHub identifier and formatting helpers."""

from __future__ import annotations

import re
from datetime import datetime, timezone

_BRANCH_UNSAFE_RE = re.compile(r"[:.\s]")


def parse_repo(full_name: str) -> tuple[str, str]:
    """Split an ``owner/repo`` identifier.

    Also accepts GitHub URLs (https or ssh).  Raises ValueError if the
    identifier cannot be parsed.
    """
    result = _extract_owner_repo(full_name)
    if result is None:
        raise ValueError(f"cannot parse GitHub repository: {full_name!r}")
    owner, repo = result.split("/", 1)
    return owner, repo


def _extract_owner_repo(value: str) -> str | None:
    """Extract 'owner/repo' from an identifier or GitHub URL.

    Handles:
      - owner/repo
      - https://github.com/owner/repo
      - https://github.com/owner/repo.git
      - git@github.com:owner/repo.git
    """
    value = value.strip().rstrip("/")
    if value.endswith(".git"):
        value = value[:-4]

    if value.startswith("git@"):
        colon_idx = value.find(":")
        if colon_idx == -1:
            return None
        value = value[colon_idx + 1 :]

    parts = value.split("/")
    if len(parts) >= 2 and parts[-2] and parts[-1]:
        return f"{parts[-2]}/{parts[-1]}"
    return None


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 datetime string, returning None on failure."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None


def iso_timestamp(now: datetime) -> str:
    """Render *now* as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def automator_branch_name(instance_id: str, now: datetime) -> str:
    """``<id>-<timestamp>`` with colons, periods and whitespace replaced by ``-``."""
    return f"{instance_id}-{_BRANCH_UNSAFE_RE.sub('-', iso_timestamp(now))}"
