"""Governance Story creation.

Each recommended dependency gets one tracking issue ("Story") in the
governance repository. The title is deterministic, so searching for it is
what keeps repeated runs from opening duplicates.
"""

from __future__ import annotations

import logging

from arm_core.errors import ConfigurationError
from arm_core.gh.client import GitHubClient
from arm_core.models import DRY_RUN_URL, Dependency, Story

logger = logging.getLogger(__name__)

DEFAULT_ECOSYSTEM = "nodejs"

ECOSYSTEM_LABELS = {
    "nodejs": "Node.js",
    "python": "Python",
    "ruby": "Ruby",
    "go": "Go",
}


def get_ecosystem_label(ecosystem: str) -> str:
    return ECOSYSTEM_LABELS.get(ecosystem, ecosystem)


class StoryCreator:
    def __init__(
        self,
        governance_repo: str,
        epic_number: int,
        target_repo: str,
        client: GitHubClient | None = None,
    ):
        if not governance_repo:
            raise ConfigurationError("governance_repo is required")
        if not epic_number:
            raise ConfigurationError("epic_number is required")
        if not target_repo:
            raise ConfigurationError("target_repo is required")
        self.governance_repo = governance_repo
        self.epic_number = epic_number
        self.target_repo = target_repo
        self.client = client

    def generate_title(self, dep: Dependency, ecosystem: str = DEFAULT_ECOSYSTEM) -> str:
        return f"Update {dep.package} ({get_ecosystem_label(ecosystem)}) from {dep.current} to {dep.target}"

    def generate_body(self, dep: Dependency, ecosystem: str = DEFAULT_ECOSYSTEM) -> str:
        label = get_ecosystem_label(ecosystem)
        change_type = dep.type.capitalize()

        lines = [
            "### Epic",
            f"#{self.epic_number} (ARM v1: automated dependency governance)",
            "",
            "### Objective",
            f"Update the {label} dependency `{dep.package}` from {dep.current} to {dep.target} "
            "to keep the target repository current and secure.",
            "",
            "### Target Repository",
            self.target_repo,
            "",
            "### Change Details",
            f"- **Package:** {dep.package}",
            f"- **Ecosystem:** {label}",
            f"- **Current version:** {dep.current}",
            f"- **Target version:** {dep.target}",
            f"- **Latest version:** {dep.latest}",
            f"- **Change type:** {change_type}",
            f"- **Dependency location:** {dep.location}",
        ]
        if not dep.target_is_latest:
            lines += [
                "",
                f"> Note: Latest version is {dep.latest}, but {dep.target} is recommended "
                "because it satisfies the declared version range.",
            ]
        lines += [
            "",
            "### Goals",
            f"- Move `{dep.package}` to {dep.target}",
            "- Regenerate the lock file so installs are reproducible",
            "- Keep the change small enough for a quick human review",
            "",
            "### Non-Goals",
            "- Major version upgrades",
            "- Refactoring application code",
            "- Updating unrelated dependencies",
            "",
            "### Acceptance Criteria",
            "- [ ] Package manifest updated",
            "- [ ] Lock file regenerated",
            "- [ ] No breaking changes introduced",
            "- [ ] PR created and linked to this Story",
            "- [ ] PR passes validation",
            "- [ ] Human review completed",
            "",
            "### Tasks",
            "- [ ] Update package manifest",
            "- [ ] Regenerate lock file",
            "- [ ] Run basic smoke tests",
            "- [ ] Create PR with Story reference",
            "- [ ] Link PR to this Story",
            "",
            "### Implementation Notes",
            "This Story was opened automatically by ARM. The linked PR closes it when merged.",
            "",
            "### PR Link",
            "_Pending: the PR will reference this Story once it is opened._",
        ]
        return "\n".join(lines)

    def _to_story(self, issue, dep: Dependency) -> Story:
        return Story(
            number=issue.number,
            title=issue.title,
            body=issue.body or "",
            url=issue.html_url,
            dependency=dep,
        )

    def _require_client(self) -> GitHubClient:
        if self.client is None:
            raise ConfigurationError("A GitHub client is required to create Stories outside dry-run mode")
        return self.client

    def find_existing_story(self, dep: Dependency, ecosystem: str = DEFAULT_ECOSYSTEM) -> Story | None:
        title = self.generate_title(dep, ecosystem)
        issue = self._require_client().search_issue_by_title(self.governance_repo, title)
        if issue is None:
            return None
        logger.info("Found existing Story #%d for %s", issue.number, dep.package)
        return self._to_story(issue, dep)

    def find_or_create_story(self, dep: Dependency, ecosystem: str = DEFAULT_ECOSYSTEM) -> tuple[Story, bool]:
        """Return ``(story, created)``; ``created`` is False when an existing Story was reused."""
        existing = self.find_existing_story(dep, ecosystem)
        if existing is not None:
            return existing, False

        title = self.generate_title(dep, ecosystem)
        issue = self._require_client().create_issue(self.governance_repo, title, self.generate_body(dep, ecosystem))
        logger.info("Created Story #%d: %s", issue.number, title)
        return self._to_story(issue, dep), True

    def create_story(self, dep: Dependency, ecosystem: str = DEFAULT_ECOSYSTEM, dry_run: bool = False) -> Story:
        if dry_run:
            return Story(
                number=0,
                title=self.generate_title(dep, ecosystem),
                body=self.generate_body(dep, ecosystem),
                url=DRY_RUN_URL,
                dependency=dep,
            )
        story, _ = self.find_or_create_story(dep, ecosystem)
        return story
