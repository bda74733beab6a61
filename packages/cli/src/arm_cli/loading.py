"""Config loading and component wiring shared by the CLI commands."""

from __future__ import annotations

import click

from arm_core.config import load_config, validate_config
from arm_core.errors import ConfigurationError
from arm_core.gh.client import GitHubClient
from arm_core.manifest import NpmLockfileUpdater
from arm_core.pr_generator import PRGenerator
from arm_core.scanner import DependencyScanner
from arm_core.story_creator import StoryCreator


def load_validated_config(config_path: str, target_repo: str | None = None) -> dict:
    """Load and validate config, turning any problem into a UsageError before network access."""
    try:
        config = load_config(config_path, cli_overrides={"target_repository": target_repo})
        validate_config(config)
    except ConfigurationError as e:
        raise click.UsageError(f"Invalid configuration: {e}")
    return config


def build_components(config: dict, token: str | None, workspace: str | None = None):
    """Construct scanner, Story creator and PR generator sharing one GitHub client.

    No client is built without a token; the creators then only work in dry-run mode.
    """
    target = config["target"]
    governance = config["governance"]

    scanner = DependencyScanner(
        target["repository"],
        workspace_dir=workspace,
        branch=target.get("branch", "main"),
    )
    client = GitHubClient(token) if token else None

    story_creator = StoryCreator(
        governance_repo=governance["repository"],
        epic_number=governance["epicNumber"],
        target_repo=target["repository"],
        client=client,
    )
    pr_generator = PRGenerator(
        target_repo=target["repository"],
        base_branch=target.get("branch", "main"),
        epic_number=governance["epicNumber"],
        client=client,
        lockfile_updater=NpmLockfileUpdater(scanner.repo_path),
    )
    return scanner, story_creator, pr_generator
