"""CLI entry point: gitops-automator.

Subcommands:
    gitops-automator run                  # One reconciliation cycle
    gitops-automator parse-versions TEXT  # Show how an override string is read
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import click
import httpx

from gitops_automator.config import DEFAULT_CONFIG_PATH, AutomatorConfig, load_config
from gitops_automator.core.github import parse_repo
from gitops_automator.core.github_client import GitHubClient, RateLimitError
from gitops_automator.core.logging import setup_logging
from gitops_automator.exceptions import AutomatorError
from gitops_automator.overrides import OverrideVersion, parse_override_versions
from gitops_automator.runner import AutomatorRunner, CycleResult


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """GitOps PR automator: keep release markers in sync with upstream repositories."""
    try:
        setup_logging(verbose=verbose)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@main.command("run")
@click.option(
    "--config-path",
    envvar="GITOPS_AUTOMATOR_CONFIG",
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Configuration YAML, relative to --workdir",
)
@click.option("--config-override", envvar="GITOPS_AUTOMATOR_CONFIG_OVERRIDE", default=None,
              help="YAML merged on top of the configuration file")
@click.option("--github-token", envvar="GITHUB_TOKEN", default=None, help="Token for the GitOps repository")
@click.option("--github-token-read-repos", envvar="GITHUB_TOKEN_READ_REPOS", default=None,
              help="Token for reading source repositories (defaults to --github-token)")
@click.option("--versions", envvar="GITOPS_AUTOMATOR_VERSIONS", default=None,
              help="Override versions: repo[:pathId]=version,sha;...")
@click.option("--repository", envvar="GITHUB_REPOSITORY", default=None,
              help="Owning repository (owner/repo)")
@click.option("--workdir", type=click.Path(file_okay=False, exists=True), default=".",
              help="Checkout of the owning repository")
def run(
    config_path: str,
    config_override: str | None,
    github_token: str | None,
    github_token_read_repos: str | None,
    versions: str | None,
    repository: str | None,
    workdir: str,
) -> None:
    """Run one reconciliation cycle."""
    if not github_token:
        click.echo(
            "Error: GitHub token not provided. Use --github-token or GITHUB_TOKEN.", err=True
        )
        sys.exit(1)
    if not repository:
        click.echo(
            "Error: owning repository not provided. Use --repository or GITHUB_REPOSITORY.",
            err=True,
        )
        sys.exit(1)

    root = Path(workdir).resolve()
    try:
        owner, name = parse_repo(repository)
        config = load_config(root / config_path, config_override)
        overrides = parse_override_versions(versions)
        cycle = asyncio.run(
            _run_cycle(
                config,
                owning_repo=f"{owner}/{name}",
                root=root,
                overrides=overrides,
                token=github_token,
                read_token=github_token_read_repos,
            )
        )
    except (AutomatorError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except RateLimitError as exc:
        click.echo(f"Error: GitHub {exc}", err=True)
        sys.exit(1)
    except httpx.HTTPStatusError as exc:
        click.echo(
            f"Error: GitHub API {exc.request.method} {exc.request.url} "
            f"failed with {exc.response.status_code}",
            err=True,
        )
        sys.exit(1)
    except httpx.HTTPError as exc:
        click.echo(f"Error: GitHub API request failed: {exc}", err=True)
        sys.exit(1)

    _report(cycle)


@main.command("parse-versions")
@click.argument("text")
def parse_versions(text: str) -> None:
    """Print the overrides encoded in TEXT, one per line."""
    for override in parse_override_versions(text):
        path_id = f":{override.path_id}" if override.path_id else ""
        click.echo(
            f"{override.repo}{path_id} -> {override.new_version} "
            f"({override.new_version_sha or 'no sha'})"
        )


async def _run_cycle(
    config: AutomatorConfig,
    *,
    owning_repo: str,
    root: Path,
    overrides: list[OverrideVersion],
    token: str,
    read_token: str | None,
) -> CycleResult:
    async with GitHubClient(token) as gitops_client:
        if read_token:
            async with GitHubClient(read_token) as source_client:
                runner = AutomatorRunner(
                    config,
                    source_client=source_client,
                    gitops_client=gitops_client,
                    owning_repo=owning_repo,
                    root=root,
                )
                return await runner.run(overrides)
        runner = AutomatorRunner(
            config,
            source_client=gitops_client,
            gitops_client=gitops_client,
            owning_repo=owning_repo,
            root=root,
        )
        return await runner.run(overrides)


def _report(cycle: CycleResult) -> None:
    outputs: dict[str, str] = {}
    repos = cycle.result.repos()
    if not repos:
        click.echo("No changes found in any of the source repos")
    else:
        click.echo(f"Detected changes: {', '.join(repos)}")
        outputs["detected-changes"] = ", ".join(repos)

    pull_request = cycle.outcome.pull_request
    if pull_request is not None:
        click.echo(f"Pull request #{pull_request.number}: {pull_request.url}")
        outputs["pull-request-url"] = pull_request.url
        outputs["pull-request-number"] = str(pull_request.number)
    for path in cycle.artifacts:
        click.echo(f"Summary written to {path}")

    _write_github_outputs(outputs)


def _write_github_outputs(outputs: dict[str, str]) -> None:
    """Append ``key=value`` lines to $GITHUB_OUTPUT when running in Actions."""
    target = os.environ.get("GITHUB_OUTPUT")
    if not target or not outputs:
        return
    with open(target, "a", encoding="utf-8") as fh:
        for key, value in outputs.items():
            fh.write(f"{key}={value}\n")
