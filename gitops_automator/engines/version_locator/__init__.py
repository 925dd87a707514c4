"""Version locator engine — version markers in tracked release files."""

from gitops_automator.engines.version_locator.locator import expand_glob, find_sha, locate
from gitops_automator.engines.version_locator.models import TrackedFile

__all__ = ["TrackedFile", "expand_glob", "find_sha", "locate"]
