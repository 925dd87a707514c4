"""Version resolver engine — override > tag at head > head SHA."""

from gitops_automator.engines.version_resolver.models import (
    Resolution,
    ResolutionSource,
    SourceHead,
    VersionTransition,
)
from gitops_automator.engines.version_resolver.resolver import (
    DEFAULT_TAG_PATTERN,
    fetch_source_head,
    find_override,
    find_transitions,
    index_tags,
    resolve,
)

__all__ = [
    "DEFAULT_TAG_PATTERN",
    "Resolution",
    "ResolutionSource",
    "SourceHead",
    "VersionTransition",
    "fetch_source_head",
    "find_override",
    "find_transitions",
    "index_tags",
    "resolve",
]
