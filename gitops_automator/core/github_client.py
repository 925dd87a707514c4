"""Async GitHub API client with pagination and rate-limit detection.

The client never retries: a failed platform call aborts the reconciliation
cycle and the next scheduled run is the retry mechanism.
"""

from __future__ import annotations

import os
import re
import time
from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from gitops_automator.exceptions import PlatformResponseError

log = structlog.get_logger("gitops_automator.engine")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_DEFAULT_MAX_PAGES = 10

_ENABLE_AUTO_MERGE_MUTATION = """
mutation($pullRequestId: ID!, $mergeMethod: PullRequestMergeMethod!) {
  enablePullRequestAutoMerge(input: {pullRequestId: $pullRequestId, mergeMethod: $mergeMethod}) {
    pullRequest { id number }
  }
}
"""


class RateLimitError(Exception):
    """Raised when GitHub reports an exhausted rate limit."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s")


class GitHubClient:
    """Thin async wrapper around the GitHub REST and GraphQL APIs.

    Repository arguments are ``owner/repo`` full names.
    """

    def __init__(self, token: str | None = None, *, base_url: str = "https://api.github.com") -> None:
        resolved_token = token or os.environ.get("GITHUB_TOKEN")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if resolved_token:
            headers["Authorization"] = f"token {resolved_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=30.0,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── generic ────────────────────────────────────────────────────────────

    async def get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        items_key: str | None = None,
        max_pages: int = _DEFAULT_MAX_PAGES,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield JSON items from a paginated GitHub API endpoint.

        Follows ``Link: <...>; rel="next"`` headers and stops after
        *max_pages* pages.  Endpoints that wrap their list in an object
        (e.g. compare → ``commits``) are unwrapped with *items_key*.
        """
        url: str | None = path
        params = dict(params or {})
        params.setdefault("per_page", 100)
        page = 0

        while url and page < max_pages:
            response = await self._request("GET", url, params=params if page == 0 else None)

            data = response.json()
            if items_key is not None and isinstance(data, dict):
                data = data.get(items_key) or []
            if isinstance(data, list):
                for item in data:
                    yield item
            else:
                yield data

            url = self._parse_next_link(response.headers.get("Link", ""))
            page += 1

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Single-resource GET, returns parsed JSON."""
        response = await self._request("GET", path, params=params)
        return response.json()

    # ── refs & branches ────────────────────────────────────────────────────

    async def get_ref(self, repo: str, ref: str) -> dict[str, Any]:
        """GET /repos/{repo}/git/ref/{ref} — *ref* like ``heads/main``."""
        return await self.get(f"/repos/{repo}/git/ref/{_quote_ref(ref)}")

    async def list_matching_refs(self, repo: str, ref: str) -> list[dict[str, Any]]:
        """GET /repos/{repo}/git/matching-refs/{ref} — e.g. ``tags``."""
        return [
            item
            async for item in self.get_paginated(
                f"/repos/{repo}/git/matching-refs/{_quote_ref(ref)}"
            )
        ]

    async def get_default_branch(self, repo: str) -> str:
        data = await self.get(f"/repos/{repo}")
        return data["default_branch"]

    async def create_branch(self, repo: str, branch: str, sha: str) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/repos/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )
        return response.json()

    async def list_branches(self, repo: str) -> list[str]:
        return [item["name"] async for item in self.get_paginated(f"/repos/{repo}/branches")]

    async def delete_branch(self, repo: str, branch: str) -> None:
        await self._request("DELETE", f"/repos/{repo}/git/refs/heads/{_quote_ref(branch)}")

    async def merge_branches(
        self, repo: str, base: str, head: str, message: str | None = None
    ) -> dict[str, Any] | None:
        """Merge *head* into *base*.  Returns None when there was nothing to merge."""
        payload: dict[str, Any] = {"base": base, "head": head}
        if message:
            payload["commit_message"] = message
        response = await self._request("POST", f"/repos/{repo}/merges", json=payload)
        if response.status_code == 204:
            return None
        return response.json()

    # ── commits ────────────────────────────────────────────────────────────

    async def compare_commits(
        self, repo: str, base: str, head: str, *, max_pages: int = _DEFAULT_MAX_PAGES
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield the commits reachable from *head* but not from *base*."""
        async for item in self.get_paginated(
            f"/repos/{repo}/compare/{_quote_ref(base)}...{_quote_ref(head)}",
            items_key="commits",
            max_pages=max_pages,
        ):
            yield item

    async def compare(self, repo: str, base: str, head: str) -> dict[str, Any]:
        """Ahead/behind status of *head* relative to *base* (commits omitted)."""
        return await self.get(
            f"/repos/{repo}/compare/{_quote_ref(base)}...{_quote_ref(head)}",
            params={"per_page": 1},
        )

    # ── contents ───────────────────────────────────────────────────────────

    async def get_file_content(self, repo: str, path: str, ref: str) -> dict[str, Any] | None:
        """Return the contents entry for *path* at *ref*, or None if it does not exist."""
        try:
            return await self.get(
                f"/repos/{repo}/contents/{quote(path)}",
                params={"ref": ref},
            )
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code in (404, 409):
                return None
            raise

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
        """PUT /repos/{repo}/contents/{path} — *sha* is the blob being replaced."""
        payload: dict[str, Any] = {
            "message": message,
            "content": content_b64,
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha
        if committer:
            payload["committer"] = committer
            payload["author"] = committer
        response = await self._request("PUT", f"/repos/{repo}/contents/{quote(path)}", json=payload)
        return response.json()

    # ── pull requests ──────────────────────────────────────────────────────

    async def list_open_pulls(self, repo: str, branch_prefix: str) -> list[dict[str, Any]]:
        """Open pull requests whose head branch starts with *branch_prefix*."""
        return [
            item
            async for item in self.get_paginated(f"/repos/{repo}/pulls", {"state": "open"})
            if (item.get("head") or {}).get("ref", "").startswith(branch_prefix)
        ]

    async def create_pull(
        self, repo: str, *, title: str, head: str, base: str, body: str
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/repos/{repo}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )
        return response.json()

    async def update_pull_body(self, repo: str, number: int, body: str) -> dict[str, Any]:
        response = await self._request("PATCH", f"/repos/{repo}/pulls/{number}", json={"body": body})
        return response.json()

    async def close_pull(self, repo: str, number: int) -> dict[str, Any]:
        response = await self._request(
            "PATCH", f"/repos/{repo}/pulls/{number}", json={"state": "closed"}
        )
        return response.json()

    async def add_labels(self, repo: str, number: int, labels: list[str]) -> None:
        await self._request("POST", f"/repos/{repo}/issues/{number}/labels", json={"labels": labels})

    async def add_comment(self, repo: str, number: int, body: str) -> None:
        await self._request("POST", f"/repos/{repo}/issues/{number}/comments", json={"body": body})

    async def enable_auto_merge(self, pull_node_id: str, merge_method: str) -> None:
        """Request platform auto-merge via the GraphQL API."""
        response = await self._request(
            "POST",
            "/graphql",
            json={
                "query": _ENABLE_AUTO_MERGE_MUTATION,
                "variables": {"pullRequestId": pull_node_id, "mergeMethod": merge_method},
            },
        )
        errors = response.json().get("errors")
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            raise PlatformResponseError(f"enablePullRequestAutoMerge failed: {messages}")

    # ── internal ───────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Issue one request; raise on rate limiting or any non-2xx status."""
        log.debug("github.request", method=method, url=url)
        resp = await self._client.request(method, url, params=params, json=json)

        if resp.status_code in (403, 429) and self._is_rate_limited(resp):
            wait = self._get_rate_limit_wait(resp)
            log.warning("github.rate_limit", url=url, retry_after=wait)
            raise RateLimitError(wait)

        resp.raise_for_status()
        return resp

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403/429 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for abuse rate limits
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Seconds until the rate limit resets, from the response headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a GitHub ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None


def _quote_ref(ref: str) -> str:
    return quote(ref, safe="/")
