"""Reconciler — map a cycle result onto the owning repository's branches and PRs.

The platform is the only source of truth: open automator pull requests are
re-enumerated on every run and file contents are compared before writing, so
re-running against an unchanged world issues no writes.  Platform errors
propagate unchanged; only branch deletion failures are logged and skipped.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import structlog

from gitops_automator.config import AutomatorConfig
from gitops_automator.core.github import automator_branch_name
from gitops_automator.core.github_client import GitHubClient, RateLimitError
from gitops_automator.engines.change_collector.models import ReconciliationResult
from gitops_automator.engines.reconciler.files import (
    apply_writes,
    plan_writes,
    render_file_updates,
)
from gitops_automator.engines.reconciler.models import (
    OpenPullRequest,
    PullRequestRef,
    ReconcileOutcome,
    ReconcileState,
)
from gitops_automator.engines.summary.render import render_pull_request_body

log = structlog.get_logger("gitops_automator.engine")

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Reconciler:
    """Drives the branch/PR lifecycle of one owning repository."""

    def __init__(
        self,
        client: GitHubClient,
        repo: str,
        config: AutomatorConfig,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._repo = repo
        self._config = config
        self._policy = config.pull_request
        self._clock = clock or _utcnow

    @property
    def branch_prefix(self) -> str:
        return f"{self._config.id}-"

    async def reconcile(self, result: ReconciliationResult) -> ReconcileOutcome:
        """Run one cycle; returns the terminal state and what was touched."""
        if not result.has_changes:
            log.info("reconciler.no_change", repo=self._repo)
            return ReconcileOutcome(state=ReconcileState.NO_CHANGE, states=[ReconcileState.NO_CHANGE])

        log.info(
            "reconciler.evaluating",
            repo=self._repo,
            source_repos=result.repos(),
            transitions=len(result.transitions),
        )
        open_pulls = await self.list_open_pulls()
        open_pulls, closed, deleted = await self.enforce_open_cap(open_pulls)

        decision = self.decide(open_pulls)
        log.info("reconciler.decision", decision=decision.value, open_pulls=len(open_pulls))

        body = render_pull_request_body(
            result,
            self._policy.title,
            include_owner=self._policy.include_owner_in_description,
        )
        if decision is ReconcileState.REUSE_EXISTING:
            outcome = await self.reuse_existing(open_pulls[-1], result, body)
        else:
            outcome = await self.retire_and_create(result, body)
        outcome.closed_pulls = [pull.number for pull in closed]
        outcome.deleted_branches = deleted + outcome.deleted_branches
        outcome.states = [ReconcileState.EVALUATING, decision, outcome.state]
        return outcome

    # ── decision ───────────────────────────────────────────────────────────

    def decide(self, open_pulls: list[OpenPullRequest]) -> ReconcileState:
        """REUSE_EXISTING when an eligible PR is open and reuse is allowed."""
        if open_pulls and not self._policy.always_create_new:
            return ReconcileState.REUSE_EXISTING
        return ReconcileState.RETIRE_AND_CREATE

    async def list_open_pulls(self) -> list[OpenPullRequest]:
        """Open automator pull requests, oldest created first."""
        items = await self._client.list_open_pulls(self._repo, self.branch_prefix)
        pulls = [OpenPullRequest.from_api(item) for item in items]
        return sorted(pulls, key=lambda pull: (pull.created_at or _OLDEST, pull.number))

    async def enforce_open_cap(
        self, open_pulls: list[OpenPullRequest]
    ) -> tuple[list[OpenPullRequest], list[OpenPullRequest], list[str]]:
        """Close the oldest PRs beyond ``leaveOpenOnlyNumberOfPRs``.

        Returns ``(remaining, closed, deleted_branches)``; *open_pulls* must be
        oldest first.
        """
        cap = self._policy.leave_open_only_number_of_prs
        if cap is None or len(open_pulls) <= cap:
            return open_pulls, [], []

        excess = len(open_pulls) - cap
        closed, remaining = open_pulls[:excess], open_pulls[excess:]
        deleted: list[str] = []
        for pull in closed:
            log.info("reconciler.close_pull", number=pull.number, branch=pull.head_ref, cap=cap)
            await self._client.close_pull(self._repo, pull.number)
            if await self._delete_branch(pull.head_ref):
                deleted.append(pull.head_ref)
        return remaining, closed, deleted

    # ── REUSE_EXISTING ─────────────────────────────────────────────────────

    async def reuse_existing(
        self, pull: OpenPullRequest, result: ReconciliationResult, body: str
    ) -> ReconcileOutcome:
        """Bring *pull* up to date with its base, refresh its body and files."""
        log.info("reconciler.reuse", number=pull.number, branch=pull.head_ref)

        status = await self._client.compare(self._repo, pull.head_ref, pull.base_ref)
        if status.get("ahead_by", 0) > 0:
            log.info("reconciler.merge_base", base=pull.base_ref, head=pull.head_ref)
            await self._client.merge_branches(
                self._repo,
                base=pull.head_ref,
                head=pull.base_ref,
                message=f"Merge {pull.base_ref} into {pull.head_ref}",
            )

        if (pull.body or "").strip() != body.strip():
            await self._client.update_pull_body(self._repo, pull.number, body)

        updates = render_file_updates(result.transitions)
        writes, skipped = await plan_writes(self._client, self._repo, updates, pull.head_ref)
        written = await apply_writes(
            self._client,
            self._repo,
            pull.head_ref,
            writes,
            title=self._policy.title,
            committer=self._committer(),
        )
        return ReconcileOutcome(
            state=ReconcileState.CONVERGED,
            decision=ReconcileState.REUSE_EXISTING,
            pull_request=pull.ref,
            branch=pull.head_ref,
            written_paths=written,
            skipped_paths=skipped,
        )

    # ── RETIRE_AND_CREATE ──────────────────────────────────────────────────

    async def retire_and_create(self, result: ReconciliationResult, body: str) -> ReconcileOutcome:
        """Cut a fresh branch from the default branch and open a new PR.

        Nothing is created when every rendered file already matches the
        default branch.
        """
        deleted: list[str] = []
        if self._policy.cleanup_existing_automator_branches:
            deleted = await self.cleanup_branches()

        default_branch = await self._client.get_default_branch(self._repo)
        updates = render_file_updates(result.transitions)
        writes, skipped = await plan_writes(self._client, self._repo, updates, default_branch)
        if not writes:
            log.info("reconciler.nothing_to_write", base=default_branch)
            return ReconcileOutcome(
                state=ReconcileState.CONVERGED,
                decision=ReconcileState.RETIRE_AND_CREATE,
                skipped_paths=skipped,
                deleted_branches=deleted,
            )

        ref = await self._client.get_ref(self._repo, f"heads/{default_branch}")
        branch = automator_branch_name(self._config.id, self._clock())
        log.info("reconciler.create_branch", branch=branch, base=default_branch)
        await self._client.create_branch(self._repo, branch, ref["object"]["sha"])

        written = await apply_writes(
            self._client,
            self._repo,
            branch,
            writes,
            title=self._policy.title,
            committer=self._committer(),
        )

        created = await self._client.create_pull(
            self._repo,
            title=self._policy.title,
            head=branch,
            base=default_branch,
            body=body,
        )
        pull_request = PullRequestRef.from_api(created)
        log.info("reconciler.pull_created", number=pull_request.number, url=pull_request.url)

        if self._policy.labels:
            await self._client.add_labels(self._repo, pull_request.number, self._policy.labels)
        if self._policy.comment:
            await self._client.add_comment(self._repo, pull_request.number, self._policy.comment)
        if self._policy.auto_merge_method is not None and pull_request.node_id:
            await self._client.enable_auto_merge(
                pull_request.node_id, self._policy.auto_merge_method.value
            )

        return ReconcileOutcome(
            state=ReconcileState.CONVERGED,
            decision=ReconcileState.RETIRE_AND_CREATE,
            pull_request=pull_request,
            branch=branch,
            written_paths=written,
            skipped_paths=skipped,
            deleted_branches=deleted,
        )

    async def cleanup_branches(self) -> list[str]:
        """Delete every branch carrying the instance prefix."""
        branches = await self._client.list_branches(self._repo)
        deleted = []
        for branch in branches:
            if branch.startswith(self.branch_prefix) and await self._delete_branch(branch):
                deleted.append(branch)
        return deleted

    # ── helpers ────────────────────────────────────────────────────────────

    async def _delete_branch(self, branch: str) -> bool:
        """Delete *branch*; failures are logged and retried on the next cycle."""
        try:
            await self._client.delete_branch(self._repo, branch)
        except (httpx.HTTPError, RateLimitError) as exc:
            log.warning("reconciler.delete_branch_failed", branch=branch, error=str(exc))
            return False
        log.info("reconciler.branch_deleted", branch=branch)
        return True

    def _committer(self) -> dict[str, str] | None:
        author = self._policy.author
        if author is None:
            return None
        return {"name": author.username, "email": author.email}
