"""AutomatorRunner — one reconciliation cycle across all source repositories.

Source repositories are processed sequentially (locate → resolve → collect)
and fanned in to a single Reconciler invocation, so one cycle produces at
most one branch/PR for all upstream changes.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import structlog

from gitops_automator.config import AutomatorConfig, SourceRepoConfig
from gitops_automator.core.github_client import GitHubClient
from gitops_automator.engines.change_collector.collector import collect_commits
from gitops_automator.engines.change_collector.models import (
    CommitRecord,
    ReconciliationResult,
    SourceRepoChanges,
)
from gitops_automator.engines.reconciler.models import ReconcileOutcome
from gitops_automator.engines.reconciler.reconciler import Reconciler
from gitops_automator.engines.summary.render import write_artifacts
from gitops_automator.engines.version_locator.locator import locate
from gitops_automator.engines.version_resolver.resolver import (
    fetch_source_head,
    find_transitions,
)
from gitops_automator.overrides import OverrideVersion, warn_unknown_repos

log = structlog.get_logger("gitops_automator.engine")


@dataclass
class CycleResult:
    """Summary of a single run() — the engine result plus what was reconciled."""

    result: ReconciliationResult
    outcome: ReconcileOutcome
    artifacts: list[Path] = field(default_factory=list)


class AutomatorRunner:
    """Orchestration layer: pure engines → one reconciliation per cycle."""

    def __init__(
        self,
        config: AutomatorConfig,
        *,
        source_client: GitHubClient,
        gitops_client: GitHubClient,
        owning_repo: str,
        root: Path,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._source_client = source_client
        self._gitops_client = gitops_client
        self._owning_repo = owning_repo
        self._root = root
        self._clock = clock

    async def run(self, overrides: Sequence[OverrideVersion] = ()) -> CycleResult:
        """Find changes in every source repo, then reconcile the owning repo.

        1. Locate, resolve and collect per source repository (sequentially)
        2. Reconcile the merged result against the owning repository
        3. Write summary artifacts when something changed
        """
        warn_unknown_repos(overrides, self._config.repo_names())

        result = await self.find_all_changes(overrides)

        reconciler = Reconciler(
            self._gitops_client, self._owning_repo, self._config, clock=self._clock
        )
        outcome = await reconciler.reconcile(result)

        artifacts: list[Path] = []
        if result.has_changes:
            artifacts = write_artifacts(result, self._config.artifacts, self._root)
        return CycleResult(result=result, outcome=outcome, artifacts=artifacts)

    async def find_all_changes(self, overrides: Sequence[OverrideVersion] = ()) -> ReconciliationResult:
        result = ReconciliationResult()
        for source_repo in self._config.source_repos:
            changes = await self.find_changes(source_repo, overrides)
            if changes is not None:
                result.per_source_repo.append(changes)

        if result.has_changes:
            log.info("runner.changes_found", source_repos=result.repos())
        else:
            log.info("runner.no_changes")
        return result

    async def find_changes(
        self, source_repo: SourceRepoConfig, overrides: Sequence[OverrideVersion]
    ) -> SourceRepoChanges | None:
        """Transitions and commit history for one source repository, or None."""
        repo = source_repo.repo
        tracked = locate(
            self._root,
            self._config.release_files_for(source_repo),
            default_regex=self._config.regex,
            default_sha_regex=self._config.github_sha_regex,
        )
        log.info(
            "locator.found_versions",
            repo=repo,
            versions=[t.current_version_token for t in tracked],
        )
        if not tracked:
            return None

        head = await fetch_source_head(
            self._source_client, repo, source_repo.ref, self._config.versioning
        )
        transitions = find_transitions(tracked, head, overrides, self._config.versioning.scheme)
        if not transitions:
            log.info("runner.up_to_date", repo=repo)
            return None

        history = self._config.pull_request.commit_history
        commits: list[CommitRecord] = []
        if not history.disable:
            commits = await collect_commits(
                self._source_client,
                repo,
                transitions,
                only_merge_commits=history.only_merge_commits,
            )
        return SourceRepoChanges(source_repo=repo, transitions=transitions, commits=commits)
