"""Scan → filter → Story/PR driver loop.

Dependencies are processed one at a time in report order. A Story always
exists before the PR that references it. A failure for one dependency is
recorded on its outcome and the loop moves on to the next one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from arm_core.filter import UpdateFilter
from arm_core.models import Dependency, DependencyReport, FilterResult, PullRequest, Story, UpdatePolicy
from arm_core.pr_generator import PRGenerator
from arm_core.scanner import DependencyScanner
from arm_core.story_creator import StoryCreator
from arm_core.utils.error_categorizer import ErrorInfo, categorize_error
from arm_core.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

CREATED = "created"
EXISTING = "existing"
DRY_RUN = "dry-run"
FAILED = "failed"


@dataclass
class DependencyOutcome:
    dependency: Dependency
    status: str  # "created" | "existing" | "dry-run" | "failed"
    story: Story | None = None
    pull_request: PullRequest | None = None
    error: ErrorInfo | None = None


@dataclass
class PipelineResult:
    report: DependencyReport
    filter_result: FilterResult
    outcomes: list[DependencyOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[DependencyOutcome]:
        return [o for o in self.outcomes if o.status == FAILED]


@dataclass(frozen=True)
class PlannedAction:
    dependency: Dependency
    story_title: str
    branch: str
    commit_message: str


def plan_actions(
    filter_result: FilterResult,
    ecosystem: str,
    story_creator: StoryCreator,
    pr_generator: PRGenerator,
) -> list[PlannedAction]:
    """Describe what a run would create, without touching GitHub."""
    return [
        PlannedAction(
            dependency=dep,
            story_title=story_creator.generate_title(dep, ecosystem),
            branch=pr_generator.generate_branch_name(dep),
            commit_message=pr_generator.generate_commit_message(dep),
        )
        for dep in filter_result.recommended
    ]


def process_dependency(
    dep: Dependency,
    ecosystem: str,
    story_creator: StoryCreator,
    pr_generator: PRGenerator,
    dry_run: bool = False,
    retry: Callable = retry_with_backoff,
) -> DependencyOutcome:
    governance_repo = story_creator.governance_repo

    if dry_run:
        story = story_creator.create_story(dep, ecosystem, dry_run=True)
        pr = pr_generator.create_pr(dep, story.number, governance_repo, dry_run=True)
        return DependencyOutcome(dependency=dep, status=DRY_RUN, story=story, pull_request=pr)

    story = None
    try:
        story, story_created = retry(lambda: story_creator.find_or_create_story(dep, ecosystem))
        pr, pr_created = retry(lambda: pr_generator.find_or_create_pr(dep, story.number, governance_repo))
    except Exception as e:
        info = categorize_error(e)
        step = "PR" if story is not None else "Story"
        logger.error("%s creation failed for %s (%s): %s", step, dep.package, info.category, e)
        return DependencyOutcome(dependency=dep, status=FAILED, story=story, error=info)

    status = CREATED if story_created or pr_created else EXISTING
    return DependencyOutcome(dependency=dep, status=status, story=story, pull_request=pr)


def run_pipeline(
    scanner: DependencyScanner,
    policy: UpdatePolicy,
    story_creator: StoryCreator,
    pr_generator: PRGenerator,
    dry_run: bool = False,
    retry: Callable = retry_with_backoff,
    on_filtered: Callable[[DependencyReport, FilterResult], None] | None = None,
    on_outcome: Callable[[DependencyOutcome], None] | None = None,
) -> PipelineResult:
    """Run one full pass. Scan failures propagate; per-dependency failures do not."""
    report = scanner.scan()
    filter_result = UpdateFilter(policy).filter(report)
    result = PipelineResult(report=report, filter_result=filter_result)
    if on_filtered is not None:
        on_filtered(report, filter_result)

    for dep in filter_result.recommended:
        outcome = process_dependency(dep, report.ecosystem, story_creator, pr_generator, dry_run=dry_run, retry=retry)
        result.outcomes.append(outcome)
        if on_outcome is not None:
            on_outcome(outcome)

    return result
