"""GitHub Actions job summary and workflow annotations."""

from __future__ import annotations

import logging
import os

from arm_core.pipeline import CREATED, DRY_RUN, EXISTING, FAILED, DependencyOutcome

logger = logging.getLogger(__name__)

_STATUS_TEXT = {
    CREATED: "✅ Created",
    EXISTING: "⏭️ Skipped (already exists)",
    DRY_RUN: "⏭️ Skipped (dry-run)",
    FAILED: "❌ Failed",
}


def _link(number: int, url: str) -> str:
    if not number:
        return "N/A"
    return f"[#{number}]({url})"


def generate_markdown_summary(outcomes: list[DependencyOutcome]) -> str:
    if not outcomes:
        return "## ARM Execution Summary\n\nNo dependencies processed.\n"

    rows = []
    for o in outcomes:
        story = _link(o.story.number, o.story.url) if o.story else "N/A"
        pr = _link(o.pull_request.number, o.pull_request.url) if o.pull_request else "N/A"
        status = _STATUS_TEXT.get(o.status, o.status)
        if o.error is not None:
            status = f"{status}: {o.error.message}"
        rows.append(f"| {o.dependency.package} | {story} | {pr} | {status} |")

    created = sum(1 for o in outcomes if o.status == CREATED)
    skipped = sum(1 for o in outcomes if o.status in (EXISTING, DRY_RUN))
    failed = sum(1 for o in outcomes if o.status == FAILED)

    lines = [
        "## ARM Execution Summary",
        "",
        "| Package | Story | PR | Status |",
        "|---------|-------|----|--------|",
        *rows,
        "",
        f"**Total:** {len(outcomes)} | **Created:** {created} | **Skipped:** {skipped} | **Failed:** {failed}",
    ]
    return "\n".join(lines) + "\n"


def write_job_summary(outcomes: list[DependencyOutcome], path: str | None = None) -> bool:
    """Append the summary to $GITHUB_STEP_SUMMARY. Returns False when there is nowhere to write."""
    path = path or os.environ.get("GITHUB_STEP_SUMMARY")
    if not path:
        return False
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(generate_markdown_summary(outcomes))
    except OSError as e:
        # The run already happened; a missing summary must not fail it.
        logger.warning("Could not write job summary to %s: %s", path, e)
        return False
    return True


def log_annotation(kind: str, message: str) -> None:
    """Emit a ``::notice::`` / ``::warning::`` / ``::error::`` annotation when running in CI."""
    if os.environ.get("CI"):
        print(f"::{kind}::{message}")
