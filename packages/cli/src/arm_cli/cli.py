"""CLI entry point for ARM (automated dependency governance).

Commands:
  run       — scan, filter, then open Stories and PRs for approved updates
  plan      — scan and filter only; show what run would create
  validate  — check the configuration file and print the effective policy
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from arm_cli.commands.plan import plan_cmd
from arm_cli.commands.run import run_cmd
from arm_cli.commands.validate import validate_cmd

console = Console()


def _version() -> str:
    try:
        return importlib.metadata.version("arm-governance")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=_version(), prog_name="arm")
@click.option(
    "--config",
    "config_path",
    default="arm.config.json",
    show_default=True,
    help="Path to the configuration file (JSON or YAML).",
    envvar="ARM_CONFIG_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Keep a repository's dependencies current through governed Stories and PRs."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(run_cmd)
main.add_command(plan_cmd)
main.add_command(validate_cmd)
