"""run command — scan, filter, and open Story + PR pairs for approved updates."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from arm_cli.auth import resolve_github_token
from arm_cli.loading import build_components, load_validated_config
from arm_core.config import describe_config, policy_from_config
from arm_core.errors import ManifestMissing, RepositoryUnavailable, ScanError
from arm_core.filter import get_summary
from arm_core.pipeline import CREATED, DRY_RUN, EXISTING, DependencyOutcome, run_pipeline
from arm_core.summary import log_annotation, write_job_summary

console = Console()


def _print_filtered(report, filter_result) -> None:
    console.print(f"[green]Scan complete at {report.scanned_at}[/green]")
    console.print(f"  Found {len(report.dependencies)} outdated dependencies\n")
    if not report.dependencies:
        return
    console.print(escape(get_summary(filter_result)))
    console.print()


def _print_outcome(outcome: DependencyOutcome) -> None:
    dep = outcome.dependency
    console.print(f"\n[bold]{escape(dep.package)}[/bold] ({dep.type}): {dep.current} → {dep.target}")
    if outcome.status in (CREATED, EXISTING, DRY_RUN):
        verb = {CREATED: "ready", EXISTING: "already exists", DRY_RUN: "planned"}[outcome.status]
        console.print(f"  Story ({verb}): {escape(outcome.story.title)}  {outcome.story.url}")
        console.print(f"  PR    ({verb}): {escape(outcome.pull_request.title)}  {outcome.pull_request.url}")
        console.print(f"  Branch: {outcome.pull_request.branch}")
        return

    stage = "PR" if outcome.story is not None else "Story"
    console.print(f"  [red]{stage} creation failed:[/red] {escape(outcome.error.message)}")
    console.print(f"  [dim]Fix: {escape(outcome.error.fix)}[/dim]")


@click.command("run")
@click.option("--repo", default=None, envvar="ARM_TARGET_REPO", help="Override target.repository (owner/name).")
@click.option(
    "--dry-run",
    is_flag=True,
    envvar="ARM_DRY_RUN",
    help="Plan Stories and PRs without calling the GitHub API.",
)
@click.option(
    "--workspace",
    default=None,
    envvar="ARM_WORKSPACE",
    help="Directory holding the target repository's working copy.",
)
@click.option(
    "--summary-file",
    default=None,
    envvar="GITHUB_STEP_SUMMARY",
    help="Append a Markdown job summary to this file.",
)
@click.option("--fail-on-error", is_flag=True, help="Exit non-zero if any Story or PR could not be created.")
@click.pass_context
def run_cmd(ctx, repo: str | None, dry_run: bool, workspace: str | None, summary_file: str | None, fail_on_error: bool):
    """Scan the target repository and open governed update Stories and PRs.

    \b
    Environment variables:
      ARM_TARGET_REPO   Target repository override
      ARM_DRY_RUN       "true" to plan without calling the GitHub API
      ARM_CONFIG_PATH   Config file path (default: arm.config.json)
      ARM_TOKEN         GitHub token with access to both repositories
      GITHUB_TOKEN      Fallback token (or use gh CLI)
    """
    config = load_validated_config(ctx.obj["config_path"], repo)

    token = None
    if not dry_run:
        token = resolve_github_token()
        if not token:
            raise click.UsageError(
                "No GitHub token found. Set ARM_TOKEN or GITHUB_TOKEN, run `gh auth login`, or use --dry-run."
            )

    console.print("[bold]ARM[/bold] dependency governance run")
    console.print(f"  Target repository: {config['target']['repository']}")
    console.print(f"  Dry run: {'YES' if dry_run else 'NO'}")
    for line in describe_config(config):
        console.print(f"  {escape(line)}")
    console.print()

    scanner, story_creator, pr_generator = build_components(config, token, workspace)

    try:
        result = run_pipeline(
            scanner,
            policy_from_config(config),
            story_creator,
            pr_generator,
            dry_run=dry_run,
            on_filtered=_print_filtered,
            on_outcome=_print_outcome,
        )
    except (RepositoryUnavailable, ManifestMissing, ScanError) as e:
        log_annotation("error", f"Scan failed: {e}")
        raise click.ClickException(f"Scan failed: {e}")

    if not result.report.dependencies:
        console.print("[green]No outdated dependencies found. Nothing to do.[/green]")
    elif not result.filter_result.recommended:
        console.print("[yellow]No updates recommended after filtering. Nothing to do.[/yellow]")

    write_job_summary(result.outcomes, summary_file)

    for outcome in result.failed:
        log_annotation(
            "error", f"{outcome.dependency.package}: {outcome.error.message}. Fix: {outcome.error.fix}"
        )

    mode = "dry-run" if dry_run else "production"
    console.print(
        f"\n[bold]ARM execution complete ({mode}).[/bold] "
        f"{len(result.outcomes)} processed, {len(result.failed)} failed."
    )

    if result.failed and fail_on_error:
        ctx.exit(1)
