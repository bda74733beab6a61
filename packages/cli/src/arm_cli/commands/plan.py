"""plan command — show the Stories and PRs a run would create."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from arm_cli.loading import build_components, load_validated_config
from arm_core.config import policy_from_config
from arm_core.errors import ManifestMissing, RepositoryUnavailable, ScanError
from arm_core.filter import filter_updates, get_summary
from arm_core.pipeline import plan_actions

console = Console()


@click.command("plan")
@click.option("--repo", default=None, envvar="ARM_TARGET_REPO", help="Override target.repository (owner/name).")
@click.option("--workspace", default=None, envvar="ARM_WORKSPACE", help="Directory holding the working copy.")
@click.pass_context
def plan_cmd(ctx, repo: str | None, workspace: str | None):
    """Scan and filter, then list planned Story titles and branches. No GitHub API calls."""
    config = load_validated_config(ctx.obj["config_path"], repo)
    scanner, story_creator, pr_generator = build_components(config, token=None, workspace=workspace)

    try:
        report = scanner.scan()
    except (RepositoryUnavailable, ManifestMissing, ScanError) as e:
        raise click.ClickException(f"Scan failed: {e}")

    result = filter_updates(report, policy_from_config(config))
    console.print(escape(get_summary(result)))

    actions = plan_actions(result, report.ecosystem, story_creator, pr_generator)
    if not actions:
        return

    table = Table(title=f"Planned Actions — {report.repository}", show_header=True, header_style="bold cyan")
    table.add_column("Package", style="bold")
    table.add_column("Type", width=6)
    table.add_column("Update")
    table.add_column("Story")
    table.add_column("Branch")

    for action in actions:
        dep = action.dependency
        table.add_row(
            escape(dep.package),
            dep.type,
            f"{dep.current} → {dep.target}",
            escape(action.story_title),
            action.branch,
        )

    console.print(table)
    console.print(f"\nTotal planned: {len(actions)} Story + PR pairs")
