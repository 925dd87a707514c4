"""Tests for the summary renderer."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from gitops_automator.config import ArtifactsConfig
from gitops_automator.engines.change_collector.models import (
    CommitRecord,
    ReconciliationResult,
    SourceRepoChanges,
)
from gitops_automator.engines.summary.render import (
    display_repo,
    render_pull_request_body,
    render_summary_json,
    render_summary_markdown,
    resolve_pr_refs,
    write_artifacts,
)


@pytest.fixture
def result(make_transition):
    commit = CommitRecord(
        sha="0123456789abcdef",
        message="feat: faster startup (#12)\n\nlong body",
        author_login="octocat",
        author_date=datetime(2024, 1, 3, tzinfo=timezone.utc),
        parent_count=2,
        html_url="https://github.com/acme/api/commit/0123456789abcdef",
    )
    return ReconciliationResult(
        per_source_repo=[
            SourceRepoChanges(
                source_repo="acme/api",
                transitions=[make_transition("v1.0.0", "v1.1.0")],
                commits=[commit],
            )
        ]
    )


class TestResolvePrRefs:
    def test_bare_reference_qualified(self):
        assert resolve_pr_refs("fix (#12) and #3", "acme/api") == "fix (acme/api#12) and acme/api#3"

    def test_qualified_reference_untouched(self):
        assert resolve_pr_refs("see other/repo#4", "acme/api") == "see other/repo#4"

    def test_no_references(self):
        assert resolve_pr_refs("plain message", "acme/api") == "plain message"


class TestDisplayRepo:
    def test_without_owner(self):
        assert display_repo("acme/api", False) == "api"

    def test_with_owner(self):
        assert display_repo("acme/api", True) == "acme/api"


class TestPullRequestBody:
    def test_layout(self, result):
        body = render_pull_request_body(result, "Update versions")
        assert body.startswith("# Update versions\n")
        assert "\n## api\n" in body
        assert "### Version" in body
        assert "- `deploy/api.yaml`: `v1.0.0` -> `v1.1.0`" in body
        assert "### Commits" in body
        assert (
            "- [`01234567`](https://github.com/acme/api/commit/0123456789abcdef) "
            "feat: faster startup (acme/api#12) by @octocat"
        ) in body
        assert "long body" not in body

    def test_include_owner(self, result):
        body = render_pull_request_body(result, "Update versions", include_owner=True)
        assert "\n## acme/api\n" in body

    def test_deterministic(self, result):
        assert render_pull_request_body(result, "t") == render_pull_request_body(result, "t")

    def test_no_commits_section_without_commits(self, make_transition):
        result = ReconciliationResult(
            per_source_repo=[
                SourceRepoChanges(source_repo="acme/api", transitions=[make_transition("a", "b")])
            ]
        )
        assert "### Commits" not in render_pull_request_body(result, "t")


class TestArtifacts:
    def test_markdown(self, result):
        markdown = render_summary_markdown(result)
        assert markdown.startswith("# Summary of Changes\n")
        assert "## acme/api" in markdown

    def test_json(self, result):
        (entry,) = json.loads(render_summary_json(result))
        assert entry["sourceRepo"] == "acme/api"
        assert entry["transitions"][0]["existingVersion"] == "v1.0.0"
        assert entry["transitions"][0]["newVersion"] == "v1.1.0"
        assert entry["commits"][0]["authorDate"] == "2024-01-03T00:00:00+00:00"
        assert entry["commits"][0]["parentCount"] == 2

    def test_write_artifacts(self, result, tmp_path):
        artifacts = ArtifactsConfig(summary_markdown_as="out/summary.md", summary_json_as="out/nested/summary.json")
        written = write_artifacts(result, artifacts, tmp_path)

        assert written == [tmp_path / "out/summary.md", tmp_path / "out/nested/summary.json"]
        assert (tmp_path / "out/summary.md").read_text(encoding="utf-8").startswith("# Summary")
        assert json.loads((tmp_path / "out/nested/summary.json").read_text(encoding="utf-8"))

    def test_no_artifacts_configured(self, result, tmp_path):
        assert write_artifacts(result, None, tmp_path) == []
        assert write_artifacts(result, ArtifactsConfig(), tmp_path) == []
