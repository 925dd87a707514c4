"""Shared fixtures for gitops_automator tests.

No network access: platform calls go to :class:`FakeGitHub`, an in-memory
stand-in for :class:`~gitops_automator.core.github_client.GitHubClient`
that records every call it receives.
"""

from __future__ import annotations

import base64
import re
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from gitops_automator.config import parse_config
from gitops_automator.engines.version_locator.models import TrackedFile
from gitops_automator.engines.version_resolver.models import VersionTransition

WRITE_METHODS = frozenset(
    {
        "create_branch",
        "delete_branch",
        "merge_branches",
        "create_or_update_file_content",
        "create_pull",
        "update_pull_body",
        "close_pull",
        "add_labels",
        "add_comment",
        "enable_auto_merge",
    }
)


def _wrap_b64(content: str) -> str:
    """Base64 wrapped at 60 columns, like the contents API returns it."""
    encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
    return "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60)) + "\n"


class FakeGitHub:
    """In-memory hosting platform implementing the client surface the engines use."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.refs: dict[tuple[str, str], str] = {}
        self.tags: dict[str, list[dict[str, Any]]] = {}
        self.commits: dict[tuple[str, str, str], list[dict[str, Any]]] = {}
        self.default_branches: dict[str, str] = {}
        self.files: dict[tuple[str, str], dict[str, str]] = {}
        self.pulls: dict[str, list[dict[str, Any]]] = {}
        self.ahead_by: dict[tuple[str, str, str], int] = {}
        self.fail_delete: set[str] = set()
        self._next_number = 100
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    # ── setup helpers ──────────────────────────────────────────────────────

    def add_repo(self, repo: str, *, default_branch: str = "main", files: dict[str, str] | None = None) -> None:
        self.default_branches[repo] = default_branch
        self.refs[(repo, f"heads/{default_branch}")] = "base" + "0" * 36
        self.files[(repo, default_branch)] = dict(files or {})

    def add_open_pull(self, repo: str, branch: str, *, created_at: datetime, body: str = "") -> dict[str, Any]:
        number = self._next_number
        self._next_number += 1
        pull = {
            "number": number,
            "id": number * 1000,
            "node_id": f"PR_{number}",
            "html_url": f"https://github.com/{repo}/pull/{number}",
            "state": "open",
            "head": {"ref": branch},
            "base": {"ref": self.default_branches.get(repo, "main")},
            "created_at": created_at.isoformat().replace("+00:00", "Z"),
            "body": body,
        }
        self.pulls.setdefault(repo, []).append(pull)
        self.refs[(repo, f"heads/{branch}")] = f"{branch}-sha"
        self.files[(repo, branch)] = dict(self.files.get((repo, pull["base"]["ref"]), {}))
        return pull

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def writes(self) -> list[tuple[str, dict[str, Any]]]:
        return [call for call in self.calls if call[0] in WRITE_METHODS]

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for called, kwargs in self.calls if called == name]

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))

    @staticmethod
    def _not_found(path: str) -> httpx.HTTPStatusError:
        request = httpx.Request("GET", f"https://api.github.com{path}")
        response = httpx.Response(404, request=request)
        return httpx.HTTPStatusError("404 Not Found", request=request, response=response)

    # ── refs & branches ────────────────────────────────────────────────────

    async def get_ref(self, repo: str, ref: str) -> dict[str, Any]:
        self._record("get_ref", repo=repo, ref=ref)
        if (repo, ref) not in self.refs:
            raise self._not_found(f"/repos/{repo}/git/ref/{ref}")
        return {"ref": f"refs/{ref}", "object": {"sha": self.refs[(repo, ref)]}}

    async def list_matching_refs(self, repo: str, ref: str) -> list[dict[str, Any]]:
        self._record("list_matching_refs", repo=repo, ref=ref)
        return list(self.tags.get(repo, []))

    async def get_default_branch(self, repo: str) -> str:
        self._record("get_default_branch", repo=repo)
        return self.default_branches[repo]

    async def create_branch(self, repo: str, branch: str, sha: str) -> dict[str, Any]:
        self._record("create_branch", repo=repo, branch=branch, sha=sha)
        self.refs[(repo, f"heads/{branch}")] = sha
        self.files[(repo, branch)] = dict(self.files[(repo, self.default_branches[repo])])
        return {"ref": f"refs/heads/{branch}", "object": {"sha": sha}}

    async def list_branches(self, repo: str) -> list[str]:
        self._record("list_branches", repo=repo)
        return [ref.removeprefix("heads/") for (r, ref) in self.refs if r == repo and ref.startswith("heads/")]

    async def delete_branch(self, repo: str, branch: str) -> None:
        self._record("delete_branch", repo=repo, branch=branch)
        if branch in self.fail_delete:
            raise self._not_found(f"/repos/{repo}/git/refs/heads/{branch}")
        self.refs.pop((repo, f"heads/{branch}"), None)
        self.files.pop((repo, branch), None)

    async def merge_branches(self, repo: str, base: str, head: str, message: str | None = None) -> dict[str, Any] | None:
        self._record("merge_branches", repo=repo, base=base, head=head, message=message)
        self.ahead_by.pop((repo, base, head), None)
        return {"sha": "merge-sha"}

    # ── commits ────────────────────────────────────────────────────────────

    async def compare_commits(self, repo: str, base: str, head: str, *, max_pages: int = 10):
        self._record("compare_commits", repo=repo, base=base, head=head)
        for item in self.commits.get((repo, base, head), []):
            yield item

    async def compare(self, repo: str, base: str, head: str) -> dict[str, Any]:
        self._record("compare", repo=repo, base=base, head=head)
        # ahead_by counts commits on head that base lacks
        return {"ahead_by": self.ahead_by.get((repo, base, head), 0), "behind_by": 0}

    # ── contents ───────────────────────────────────────────────────────────

    async def get_file_content(self, repo: str, path: str, ref: str) -> dict[str, Any] | None:
        self._record("get_file_content", repo=repo, path=path, ref=ref)
        content = self.files.get((repo, ref), {}).get(path)
        if content is None:
            return None
        return {"path": path, "sha": f"blob-{len(content)}", "content": _wrap_b64(content)}

    async def create_or_update_file_content(
        self,
        repo: str,
        path: str,
        *,
        branch: str,
        content_b64: str,
        message: str,
        sha: str | None = None,
        committer: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        self._record(
            "create_or_update_file_content",
            repo=repo,
            path=path,
            branch=branch,
            message=message,
            sha=sha,
            committer=committer,
        )
        self.files.setdefault((repo, branch), {})[path] = base64.b64decode(content_b64).decode("utf-8")
        return {"content": {"path": path}}

    # ── pull requests ──────────────────────────────────────────────────────

    async def list_open_pulls(self, repo: str, branch_prefix: str) -> list[dict[str, Any]]:
        self._record("list_open_pulls", repo=repo, branch_prefix=branch_prefix)
        return [
            dict(pull)
            for pull in self.pulls.get(repo, [])
            if pull["state"] == "open" and pull["head"]["ref"].startswith(branch_prefix)
        ]

    async def create_pull(self, repo: str, *, title: str, head: str, base: str, body: str) -> dict[str, Any]:
        self._record("create_pull", repo=repo, title=title, head=head, base=base, body=body)
        self._clock += timedelta(minutes=1)
        number = self._next_number
        self._next_number += 1
        pull = {
            "number": number,
            "id": number * 1000,
            "node_id": f"PR_{number}",
            "html_url": f"https://github.com/{repo}/pull/{number}",
            "state": "open",
            "head": {"ref": head},
            "base": {"ref": base},
            "created_at": self._clock.isoformat().replace("+00:00", "Z"),
            "body": body,
        }
        self.pulls.setdefault(repo, []).append(pull)
        return dict(pull)

    def _pull(self, repo: str, number: int) -> dict[str, Any]:
        return next(pull for pull in self.pulls[repo] if pull["number"] == number)

    async def update_pull_body(self, repo: str, number: int, body: str) -> dict[str, Any]:
        self._record("update_pull_body", repo=repo, number=number, body=body)
        self._pull(repo, number)["body"] = body
        return dict(self._pull(repo, number))

    async def close_pull(self, repo: str, number: int) -> dict[str, Any]:
        self._record("close_pull", repo=repo, number=number)
        self._pull(repo, number)["state"] = "closed"
        return dict(self._pull(repo, number))

    async def add_labels(self, repo: str, number: int, labels: list[str]) -> None:
        self._record("add_labels", repo=repo, number=number, labels=list(labels))

    async def add_comment(self, repo: str, number: int, body: str) -> None:
        self._record("add_comment", repo=repo, number=number, body=body)

    async def enable_auto_merge(self, pull_node_id: str, merge_method: str) -> None:
        self._record("enable_auto_merge", pull_node_id=pull_node_id, merge_method=merge_method)


# ── fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def make_config():
    """Build an AutomatorConfig from camelCase keyword overrides."""

    def _make(**overrides: Any):
        data: dict[str, Any] = {
            "id": "gitops-pr-automator",
            "sourceRepos": [{"repo": "acme/api", "ref": "heads/main"}],
            "releaseFiles": [{"path": "deploy/*.yaml", "regex": r"(?<=image: acme/api:)\S+"}],
            "pullRequest": {"title": "Update versions", "labels": ["gitops"]},
        }
        pull_request = overrides.pop("pullRequest", None)
        data.update(overrides)
        if pull_request:
            data["pullRequest"] = {**data["pullRequest"], **pull_request}
        return parse_config(data)

    return _make


@pytest.fixture
def make_tracked():
    """Build a TrackedFile whose content holds *token* after ``image: acme/api:``."""

    def _make(
        token: str,
        *,
        path: str = "deploy/api.yaml",
        path_id: str | None = None,
        sha: str | None = None,
        content: str | None = None,
    ) -> TrackedFile:
        raw = content if content is not None else f"image: acme/api:{token}\n"
        return TrackedFile(
            absolute_path=f"/work/{path}",
            repo_relative_path=path,
            raw_content=raw,
            match_pattern=re.compile(r"(?<=image: acme/api:)\S+", re.MULTILINE),
            current_version_token=token,
            path_id=path_id,
            current_version_sha=sha if sha is not None else token,
        )

    return _make


@pytest.fixture
def make_transition(make_tracked):
    def _make(old: str, new: str, *, path: str = "deploy/api.yaml", old_sha: str | None = None,
              new_sha: str | None = None) -> VersionTransition:
        tracked = make_tracked(old, path=path, sha=old_sha)
        return VersionTransition(
            tracked_file=tracked,
            existing_version_token=old,
            existing_version_sha=tracked.current_version_sha,
            new_version_token=new,
            new_version_sha=new_sha if new_sha is not None else new,
        )

    return _make


def commit_item(
    sha: str,
    message: str = "change",
    *,
    date: str | None = "2024-01-01T00:00:00Z",
    parents: int = 1,
    login: str | None = "octocat",
) -> dict[str, Any]:
    """A commit as returned by the compare API."""
    return {
        "sha": sha,
        "html_url": f"https://github.com/acme/api/commit/{sha}",
        "author": {"login": login} if login else None,
        "parents": [{"sha": f"p{i}"} for i in range(parents)],
        "commit": {"message": message, "author": {"name": "Octo Cat", "date": date}},
    }


@pytest.fixture
def make_commit():
    return commit_item
