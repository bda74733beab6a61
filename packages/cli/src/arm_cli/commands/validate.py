"""validate command — check configuration before any network action."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from arm_cli.loading import load_validated_config
from arm_core.config import describe_config

console = Console()


@click.command("validate")
@click.option("--repo", default=None, envvar="ARM_TARGET_REPO", help="Override target.repository (owner/name).")
@click.pass_context
def validate_cmd(ctx, repo: str | None):
    """Validate the configuration file and print the effective policy."""
    config = load_validated_config(ctx.obj["config_path"], repo)

    console.print("[green]Config validated successfully:[/green]")
    console.print(f"  target:     {config['target']['repository']} ({config['target'].get('branch', 'main')})")
    console.print(
        f"  governance: {config['governance']['repository']} (epic #{config['governance']['epicNumber']})"
    )
    for line in describe_config(config):
        console.print(f"  {escape(line)}")
