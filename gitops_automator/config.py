"""Configuration loading for the automator (YAML → pydantic models)."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from gitops_automator.exceptions import ConfigError

DEFAULT_CONFIG_PATH = ".github/gitops/gitops-pr-automator.config.yaml"
DEFAULT_INSTANCE_ID = "gitops-pr-automator"


class _CamelModel(BaseModel):
    """YAML keys are camelCase; Python attributes stay snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _as_pattern_list(value: Any) -> Any:
    if isinstance(value, str):
        return [value]
    return value


def _check_patterns(patterns: list[str] | None) -> list[str] | None:
    for pattern in patterns or []:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"invalid regular expression {pattern!r}: {exc}") from exc
    return patterns


class VersioningScheme(str, Enum):
    """How a source repository's new version is derived from its head."""

    COMMIT_SHA_ONLY = "commit-sha-only"
    COMMIT_TAGS_OR_SHA = "commit-tags-or-sha"
    COMMIT_TAGS_ONLY = "commit-tags-only"


class AutoMergeMethod(str, Enum):
    MERGE = "MERGE"
    SQUASH = "SQUASH"
    REBASE = "REBASE"


class ReleaseFileConfig(_CamelModel):
    """A glob of tracked files plus the patterns that locate versions in them."""

    path: str
    ignore: str | None = None
    regex: list[str] | None = None
    id: str | None = None
    github_sha_regex: list[str] | None = None

    @field_validator("regex", "github_sha_regex", mode="before")
    @classmethod
    def _single_pattern(cls, value: Any) -> Any:
        return _as_pattern_list(value)

    @field_validator("regex", "github_sha_regex")
    @classmethod
    def _valid_regex(cls, value: list[str] | None) -> list[str] | None:
        return _check_patterns(value)


class SourceRepoConfig(_CamelModel):
    repo: str
    ref: str = "heads/master"
    release_files: list[ReleaseFileConfig] | None = None


class VersioningConfig(_CamelModel):
    scheme: VersioningScheme = VersioningScheme.COMMIT_SHA_ONLY
    resolve_tags_pattern: str | None = None

    @field_validator("resolve_tags_pattern")
    @classmethod
    def _valid_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            _check_patterns([value])
        return value


class CommitHistoryConfig(_CamelModel):
    disable: bool = False
    only_merge_commits: bool = False


class PullRequestAuthorConfig(_CamelModel):
    username: str
    email: str


class PullRequestConfig(_CamelModel):
    """Pull-request policy for the owning (GitOps) repository."""

    title: str
    labels: list[str] = Field(default_factory=list)
    auto_merge_method: AutoMergeMethod | None = None
    comment: str | None = None
    commit_history: CommitHistoryConfig = Field(default_factory=CommitHistoryConfig)
    cleanup_existing_automator_branches: bool = False
    always_create_new: bool = False
    leave_open_only_number_of_prs: int | None = Field(
        default=None, ge=0, alias="leaveOpenOnlyNumberOfPRs"
    )
    include_owner_in_description: bool = False
    author: PullRequestAuthorConfig | None = None


class ArtifactsConfig(_CamelModel):
    summary_markdown_as: str | None = None
    summary_json_as: str | None = None


class AutomatorConfig(_CamelModel):
    """Root of ``gitops-pr-automator.config.yaml``."""

    id: str = DEFAULT_INSTANCE_ID
    source_repos: list[SourceRepoConfig]
    release_files: list[ReleaseFileConfig] = Field(default_factory=list)
    regex: list[str] = Field(default_factory=list)
    github_sha_regex: list[str] = Field(default_factory=list)
    versioning: VersioningConfig = Field(default_factory=VersioningConfig)
    pull_request: PullRequestConfig
    artifacts: ArtifactsConfig | None = None

    @field_validator("regex", "github_sha_regex", mode="before")
    @classmethod
    def _single_pattern(cls, value: Any) -> Any:
        return _as_pattern_list(value)

    @field_validator("regex", "github_sha_regex")
    @classmethod
    def _valid_regex(cls, value: list[str]) -> list[str]:
        return _check_patterns(value) or []

    @field_validator("id")
    @classmethod
    def _non_empty_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("id must not be empty")
        return value

    @model_validator(mode="after")
    def _single_inheriting_repo(self) -> AutomatorConfig:
        # a marker belongs to exactly one source repo
        inheriting = [source.repo for source in self.source_repos if source.release_files is None]
        if self.release_files and len(inheriting) > 1:
            raise ValueError(
                "top-level releaseFiles can only be inherited by one source repo; "
                f"set releaseFiles on each of {', '.join(inheriting)}"
            )
        return self

    def release_files_for(self, source_repo: SourceRepoConfig) -> list[ReleaseFileConfig]:
        """Release files of *source_repo*, falling back to the top-level list.

        Validation guarantees at most one source repo takes the fallback.
        """
        if source_repo.release_files is not None:
            return source_repo.release_files
        return self.release_files

    def repo_names(self) -> list[str]:
        return [source.repo for source in self.source_repos]


def load_config(config_path: Path, override_yaml: str | None = None) -> AutomatorConfig:
    """Load configuration from disk, deep-merging an optional YAML override."""
    if not config_path.exists():
        raise ConfigError(f"configuration file not found: {config_path}")

    data = _read_yaml(config_path.read_text(encoding="utf-8"), config_path.name)
    if override_yaml and override_yaml.strip():
        data = deep_merge(data, _read_yaml(override_yaml, "config override"))
    return parse_config(data)


def parse_config(data: dict[str, Any]) -> AutomatorConfig:
    """Validate a raw mapping into :class:`AutomatorConfig`."""
    try:
        return AutomatorConfig.model_validate(data)
    except ValidationError as exc:
        messages = []
        for err in exc.errors():
            loc = " → ".join(str(part) for part in err["loc"])
            messages.append(f"{loc}: {err['msg']}")
        raise ConfigError("; ".join(messages)) from exc


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into a copy of *base*."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(text: str, source: str) -> dict[str, Any]:
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse {source}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{source} must contain a mapping at the root")
    return loaded
