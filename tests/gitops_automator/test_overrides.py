"""Tests for override-version parsing."""

from __future__ import annotations

from gitops_automator.overrides import (
    OverrideVersion,
    parse_override_versions,
    warn_unknown_repos,
)


class TestParseOverrideVersions:
    def test_empty(self):
        assert parse_override_versions(None) == []
        assert parse_override_versions("") == []

    def test_single_entry(self):
        assert parse_override_versions("acme/api=v1.2.3,abc123") == [
            OverrideVersion(repo="acme/api", new_version="v1.2.3", new_version_sha="abc123")
        ]

    def test_path_id_and_multiple_entries(self):
        result = parse_override_versions("acme/api:backend=v2,sha2; acme/web=v3,sha3")
        assert result == [
            OverrideVersion(repo="acme/api", path_id="backend", new_version="v2", new_version_sha="sha2"),
            OverrideVersion(repo="acme/web", new_version="v3", new_version_sha="sha3"),
        ]

    def test_missing_sha(self):
        (override,) = parse_override_versions("acme/api=v1")
        assert override.new_version == "v1"
        assert override.new_version_sha is None

    def test_empty_path_id_means_none(self):
        (override,) = parse_override_versions("acme/api:=v1,sha")
        assert override.path_id is None

    def test_whitespace_trimmed(self):
        (override,) = parse_override_versions("  acme/api : be =  v1 , sha1 ")
        assert override == OverrideVersion(
            repo="acme/api", path_id="be", new_version="v1", new_version_sha="sha1"
        )

    def test_malformed_entries_skipped(self):
        result = parse_override_versions("garbage;a=b=c;acme/api=v1,s;;=v2")
        assert [o.repo for o in result] == ["acme/api"]

    def test_trailing_separator(self):
        assert len(parse_override_versions("acme/api=v1,s;")) == 1


class TestWarnUnknownRepos:
    def test_returns_unknown(self):
        overrides = [
            OverrideVersion(repo="acme/api", new_version="v1"),
            OverrideVersion(repo="other/thing", new_version="v2"),
        ]
        unknown = warn_unknown_repos(overrides, ["acme/api"])
        assert [o.repo for o in unknown] == ["other/thing"]

    def test_all_known(self):
        assert warn_unknown_repos([OverrideVersion(repo="a/b", new_version="1")], ["a/b"]) == []
